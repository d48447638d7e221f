"""
Reporting module for ProviderMatch.

Summary statistics over ranked matches and provider teams.
"""
