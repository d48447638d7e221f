"""
ProviderMatch - Service Provider Matching and Ranking Engine

Scores and ranks verified service providers for a requested category using
Bayesian-smoothed ratings, experience and geographic proximity, and searches
for small provider teams that jointly cover several categories.
"""

__version__ = "1.0.0"
__author__ = "ProviderMatch Team"
