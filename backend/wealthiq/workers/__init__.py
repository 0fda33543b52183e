"""
Background workers and jobs.
"""
