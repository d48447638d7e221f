"""
Pipeline orchestration for ProviderMatch.
"""
