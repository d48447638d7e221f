"""
Geographic utilities for ProviderMatch.

Great-circle distance and coordinate checks used by the scorer.
"""
