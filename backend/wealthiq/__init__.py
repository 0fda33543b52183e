"""
WealthIQ backend: identity ingestion and HubSpot contact synchronization.
"""
