"""
Price Match Service
Single entry point wiring providers, the match store and the resolvers
together for the HTTP layer and the CLI.
"""

import logging
from typing import Optional, Sequence

from src.aggregation.cheapest import CheapestResolver
from src.aggregation.search import SearchAggregator
from src.config import Settings
from src.database.match_store import MatchStore
from src.errors import ConfigurationError
from src.models import ProductMatch
from src.providers.client import ProviderClient
from src.providers.registry import ProviderRegistry
from src.results import ApiResult

logger = logging.getLogger(__name__)


class PriceMatchService:
    """
    The three operations exposed upstream:

    - search_all_providers(term)
    - save_matches(canonical_name, matches)
    - cheapest_price(canonical_name)

    Each returns an ApiResult. The store is optional so that searching works
    without storage credentials.
    """

    def __init__(self, registry: ProviderRegistry, client: ProviderClient, store: Optional[MatchStore] = None):
        self.registry = registry
        self.client = client
        self.store = store
        self.aggregator = SearchAggregator(registry, client)
        self.resolver = CheapestResolver(store, registry, client) if store else None

    @classmethod
    async def from_settings(cls, settings: Settings, with_store: bool = True) -> 'PriceMatchService':
        """
        Build the service from loaded settings.

        Args:
            settings: Process settings
            with_store: Connect to Supabase (requires credentials)

        Raises:
            ConfigurationError: with_store is set but credentials are missing
        """
        store = None
        if with_store:
            url, key = settings.require_supabase()
            store = await MatchStore.connect(url, key, max_connections=settings.store_max_connections)

        return cls(settings.registry, ProviderClient(timeout=settings.provider_timeout), store)

    async def search_all_providers(self, term: str) -> ApiResult:
        return await self.aggregator.search_all_providers(term)

    async def save_matches(self, canonical_name: str, matches: Sequence[ProductMatch]) -> ApiResult:
        if self.store is None:
            return ApiResult.from_error(ConfigurationError("Match storage is not configured."))
        return await self.store.save_matches(canonical_name, matches)

    async def load_matches(self, canonical_name: str) -> ApiResult:
        if self.store is None:
            return ApiResult.from_error(ConfigurationError("Match storage is not configured."))
        return await self.store.load_matches(canonical_name)

    async def cheapest_price(self, canonical_name: str) -> ApiResult:
        if self.resolver is None:
            return ApiResult.from_error(ConfigurationError("Match storage is not configured."))
        return await self.resolver.cheapest_price(canonical_name)

    def __repr__(self) -> str:
        """String representation"""
        storage = 'with storage' if self.store else 'search only'
        return f"PriceMatchService({len(self.registry)} providers, {storage})"
