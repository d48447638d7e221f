"""
Matching engine for ProviderMatch.

Implements provider scoring, single-category ranking and multi-category
team search over a caller-supplied provider snapshot.
"""
