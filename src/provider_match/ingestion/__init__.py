"""
Data ingestion module for ProviderMatch.

Handles loading and validation of provider snapshots from local files
before they are handed to the matching engine.
"""
