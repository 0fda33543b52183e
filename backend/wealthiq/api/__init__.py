"""
HTTP API for identity ingestion and HubSpot sync.
"""
