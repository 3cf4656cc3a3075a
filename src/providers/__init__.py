"""
Store Providers
Configuration, registry and HTTP client for store search backends
"""

from src.providers.base import Provider
from src.providers.registry import ProviderRegistry
from src.providers.client import ProviderClient, parse_search_response

__all__ = [
    'Provider',
    'ProviderRegistry',
    'ProviderClient',
    'parse_search_response',
]
