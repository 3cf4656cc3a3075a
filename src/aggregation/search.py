"""
Search Aggregator
Fans a search term out to every configured store and merges the results
"""

import logging
import time
from typing import Dict, List, Optional

from src.aggregation.outcomes import diagnostics_for, gather_outcomes, raise_if_all_failed
from src.errors import NotFound, PriceMatchError, ValidationError
from src.models import AttributedProduct, RawProduct, normalize_name
from src.providers.base import Provider
from src.providers.client import ProviderClient
from src.providers.registry import ProviderRegistry
from src.results import ApiResult

logger = logging.getLogger(__name__)


def filter_by_term(products: List[RawProduct], term: str) -> List[RawProduct]:
    """
    Keep products whose name contains the term (case-insensitive substring).

    Args:
        products: Products from one provider
        term: Already normalized search term

    Returns:
        List[RawProduct]: Matching products, provider order preserved
    """
    return [product for product in products if term in product.name.lower()]


class SearchAggregator:
    """
    Searches all configured stores concurrently.

    Strategy:
    1. Normalize the term
    2. One search call per provider, all in flight at once
    3. Drop products whose name does not contain the term
    4. Tag survivors with their store
    5. Merge in provider order, then stable-sort by price

    A failing provider contributes nothing and is reported as a diagnostic.
    Only when every provider fails does the search fail as a whole.
    """

    def __init__(self, registry: ProviderRegistry, client: ProviderClient):
        self.registry = registry
        self.client = client

    async def search_all_providers(self, term: str) -> ApiResult:
        """
        Search every provider for a term.

        Args:
            term: User search term

        Returns:
            ApiResult with data = List[AttributedProduct] sorted by price,
            or a failure with kind ValidationError, NotFound or
            AllProvidersUnreachable
        """
        diagnostics: List[Dict[str, str]] = []
        started = time.perf_counter()

        try:
            products = await self.search(term, diagnostics)
        except PriceMatchError as e:
            logger.info("search for %r failed: %s", term, e.kind)
            return ApiResult.from_error(e, diagnostics)

        logger.info(
            "search for %r found %s products in %.2fs across %s providers",
            normalize_name(term),
            len(products),
            time.perf_counter() - started,
            len(self.registry),
        )
        return ApiResult.ok(f"Found {len(products)} products.", products, diagnostics)

    async def search(self, term: str, diagnostics: Optional[List[Dict[str, str]]] = None) -> List[AttributedProduct]:
        """
        Raising variant of search_all_providers.

        Args:
            term: User search term
            diagnostics: List that receives one entry per failed provider

        Returns:
            List[AttributedProduct]: Non-empty, sorted ascending by price

        Raises:
            ValidationError: Term is blank
            AllProvidersUnreachable: Every provider failed
            NotFound: No provider returned a matching product
        """
        term = normalize_name(term or '')
        if not term:
            raise ValidationError("Search term must not be empty.")

        providers = self.registry.get_all()

        async with self.client.session() as session:
            outcomes = await gather_outcomes(
                {
                    provider.name: self.client.search(provider.endpoint, term, provider.name, session=session)
                    for provider in providers
                },
                {provider.name: provider.name for provider in providers},
            )

        if diagnostics is not None:
            diagnostics.extend(diagnostics_for(outcomes))
        raise_if_all_failed(outcomes, 'providers')

        by_name = {provider.name: provider for provider in providers}
        merged: List[AttributedProduct] = []
        for outcome in outcomes:
            if outcome.success:
                merged.extend(self._attribute(by_name[outcome.key], filter_by_term(outcome.value, term)))

        if not merged:
            raise NotFound("No products found.")

        # sorted() is stable, so equal prices keep provider order
        return sorted(merged, key=lambda product: product.price)

    @staticmethod
    def _attribute(provider: Provider, products: List[RawProduct]) -> List[AttributedProduct]:
        return [product.attribute(provider.name, provider.endpoint) for product in products]
