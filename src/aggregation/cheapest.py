"""
Cheapest Price Resolver
Finds the current cheapest offer for a saved canonical product by re-querying
only the stores known to carry it.
"""

import logging
import time
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence, Tuple

from src.aggregation.outcomes import diagnostics_for, gather_outcomes, raise_if_all_failed
from src.database.match_store import MatchStore
from src.errors import NotFound, PriceMatchError
from src.models import AttributedProduct, FetchGroup, ProductMatch
from src.providers.client import ProviderClient
from src.providers.registry import ProviderRegistry
from src.results import ApiResult

logger = logging.getLogger(__name__)


def build_fetch_groups(matches: Sequence[ProductMatch], registry: ProviderRegistry) -> List[FetchGroup]:
    """
    Group matches by (endpoint, store) so each store is searched once.

    The endpoint comes from the provider configuration; a match whose store
    is not configured falls back to its own URL, which older clients filled
    with the store endpoint.

    Args:
        matches: Saved matches of one canonical product
        registry: Configured providers

    Returns:
        List[FetchGroup]: One group per distinct (endpoint, store), in order
            of first appearance
    """
    grouped: 'OrderedDict[Tuple[str, str], List[int]]' = OrderedDict()

    for match in matches:
        endpoint = registry.endpoint_for(match.provider_name, match.product_url)
        if endpoint is None:
            logger.warning(
                "skipping match %s at '%s': store is not configured and url is not an endpoint",
                match.provider_product_id,
                match.provider_name,
            )
            continue
        grouped.setdefault((endpoint, match.provider_name), []).append(match.provider_product_id)

    return [
        FetchGroup(provider_endpoint=endpoint, provider_name=name, provider_product_ids=frozenset(ids))
        for (endpoint, name), ids in grouped.items()
    ]


def pick_cheapest(products: List[AttributedProduct]) -> AttributedProduct:
    # min() returns the first of equal minima, keeping group order on ties
    return min(products, key=lambda product: product.price)


class CheapestResolver:
    """
    Resolves the cheapest live offer for a canonical product.

    Strategy:
    1. Load the saved matches
    2. Build one fetch group per (endpoint, store)
    3. Search each group concurrently with the canonical name
    4. Keep only products whose id was matched for that group
    5. Return the lowest price

    Products that a store has delisted since matching simply drop out.
    """

    def __init__(self, store: MatchStore, registry: ProviderRegistry, client: ProviderClient):
        self.store = store
        self.registry = registry
        self.client = client

    async def cheapest_price(self, canonical_name: str) -> ApiResult:
        """
        Look up the cheapest current offer.

        Args:
            canonical_name: Saved product name

        Returns:
            ApiResult with data = AttributedProduct; failure kinds
            ValidationError, NotFound, AllProvidersUnreachable or PersistenceError
        """
        diagnostics: List[Dict[str, str]] = []
        started = time.perf_counter()

        try:
            cheapest = await self.resolve(canonical_name, diagnostics)
        except PriceMatchError as e:
            logger.info("cheapest lookup for %r failed: %s", canonical_name, e.kind)
            return ApiResult.from_error(e, diagnostics)

        logger.info(
            "cheapest offer for %r is %s at %s (%.2fs)",
            canonical_name,
            cheapest.price,
            cheapest.provider_name,
            time.perf_counter() - started,
        )
        return ApiResult.ok("Found cheapest product.", cheapest, diagnostics)

    async def resolve(self, canonical_name: str,
                      diagnostics: Optional[List[Dict[str, str]]] = None) -> AttributedProduct:
        """
        Raising variant of cheapest_price.

        Raises:
            ValidationError: Blank name
            NotFound: Unknown product, or none of its matched products is listed anymore
            AllProvidersUnreachable: Every fetch group failed
            PersistenceError: Storage fault while loading matches
        """
        product = await self.store.get_canonical_product(canonical_name)
        groups = build_fetch_groups(product.matches, self.registry)

        if not groups:
            raise NotFound(f"No store matches saved for '{product.name}'.")

        async with self.client.session() as session:
            outcomes = await gather_outcomes(
                {
                    group.key: self.client.search(
                        group.provider_endpoint, product.name, group.provider_name, session=session
                    )
                    for group in groups
                },
                {group.key: group.provider_name for group in groups},
            )

        if diagnostics is not None:
            diagnostics.extend(diagnostics_for(outcomes))
        raise_if_all_failed(outcomes, 'store lookups')

        groups_by_key = {group.key: group for group in groups}
        offers: List[AttributedProduct] = []
        for outcome in outcomes:
            if not outcome.success:
                continue
            group = groups_by_key[outcome.key]
            offers.extend(
                raw.attribute(group.provider_name, group.provider_endpoint)
                for raw in outcome.value
                if raw.provider_product_id in group.provider_product_ids
            )

        if not offers:
            raise NotFound(f"None of the matched products for '{product.name}' are listed anymore.")

        return pick_cheapest(offers)
