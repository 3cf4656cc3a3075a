"""
Match Store
Persists canonical products and their per-store matches in Supabase.

Tables and the save function are defined in sql/schema.sql. Saving goes
through the `save_product_matches` Postgres function so that the
lookup-or-create of the canonical product and the batch insert of its
matches run in one transaction.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from supabase import AsyncClient, acreate_client

from src.errors import ConfigurationError, NotFound, PersistenceError, PriceMatchError, ValidationError
from src.models import CanonicalProduct, ProductMatch, normalize_name
from src.results import ApiResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONNECTIONS = 20

CANONICAL_TABLE = 'canonical_products'
MATCHES_TABLE = 'product_matches'
SAVE_FUNCTION = 'save_product_matches'


def validate_matches(matches: Sequence[ProductMatch]) -> List[ProductMatch]:
    """
    Check a batch of matches and drop in-batch duplicates.

    Args:
        matches: Matches selected by the caller

    Returns:
        List[ProductMatch]: Matches in input order, first occurrence of each
            (provider_product_id, provider_name) kept

    Raises:
        ValidationError: Empty batch or a match with a blank store/url or
            a non-integer id
    """
    if not matches:
        raise ValidationError("At least one product match is required.")

    unique: Dict[tuple, ProductMatch] = {}
    for match in matches:
        if isinstance(match.provider_product_id, bool) or not isinstance(match.provider_product_id, int):
            raise ValidationError(f"Product id {match.provider_product_id!r} is not an integer.")
        if not match.provider_name or not match.provider_name.strip():
            raise ValidationError("Every match needs a store name.")
        if not match.product_url or not match.product_url.strip():
            raise ValidationError("Every match needs a product url.")
        unique.setdefault(match.key, match)

    return list(unique.values())


class MatchStore:
    """
    Durable mapping from canonical product name to store matches.

    Every operation takes one of `max_connections` slots for its whole
    duration and releases it on every exit path. Nothing is cached; each
    call reads fresh rows.
    """

    def __init__(self, client: AsyncClient, max_connections: int = DEFAULT_MAX_CONNECTIONS):
        """
        Args:
            client: Async Supabase client
            max_connections: Upper bound on concurrent storage operations
        """
        self.client = client
        self.max_connections = max_connections
        self._slots = asyncio.Semaphore(max_connections)

    @classmethod
    async def connect(cls, url: str, key: str, max_connections: int = DEFAULT_MAX_CONNECTIONS) -> 'MatchStore':
        """Create a store backed by a new Supabase client."""
        try:
            client = await acreate_client(url, key)
        except Exception as e:
            # supabase rejects malformed URLs and keys with its own exception types
            raise ConfigurationError(
                "Could not create Supabase client; check SUPABASE_URL and SUPABASE_KEY"
            ) from e
        return cls(client, max_connections=max_connections)

    async def save_matches(self, canonical_name: str, matches: Sequence[ProductMatch]) -> ApiResult:
        """
        Attach matches to a canonical product, creating the product if needed.

        Saving the same matches twice leaves the same rows as saving once.

        Args:
            canonical_name: Product name (normalized before storage)
            matches: Store matches chosen by the caller

        Returns:
            ApiResult with no data on success; failure kinds ValidationError
            or PersistenceError
        """
        try:
            _, saved = await self.save(canonical_name, matches)
        except PriceMatchError as e:
            return ApiResult.from_error(e)

        return ApiResult.ok(f"Saved {saved} price matches for '{normalize_name(canonical_name)}'.")

    async def save(self, canonical_name: str, matches: Sequence[ProductMatch]):
        """
        Raising variant of save_matches.

        Returns:
            Tuple of (canonical_id, number of matches submitted)

        Raises:
            ValidationError: Blank name or invalid matches
            PersistenceError: Any storage fault; nothing is committed
        """
        name = normalize_name(canonical_name or '')
        if not name:
            raise ValidationError("Product name must not be empty.")
        batch = validate_matches(matches)

        payload = [
            {
                'provider_product_id': match.provider_product_id,
                'product_url': match.product_url,
                'provider_name': match.provider_name,
            }
            for match in batch
        ]

        async with self._slots:
            response = await self._execute(
                self.client.rpc(SAVE_FUNCTION, {'p_name': name, 'p_matches': payload}),
                'saving price matches for',
                name,
            )

        canonical_id = _scalar(response.data)
        if canonical_id is None:
            logger.error("save function returned no id for '%s'", name)
            raise PersistenceError(f"Error saving price matches for '{name}'.")

        logger.info("Saved %s price matches for product '%s' (id %s)", len(batch), name, canonical_id)
        return canonical_id, len(batch)

    async def load_matches(self, canonical_name: str) -> ApiResult:
        """
        Load the matches saved for a canonical product.

        Returns:
            ApiResult with data = List[ProductMatch]; failure kinds
            ValidationError, NotFound or PersistenceError
        """
        try:
            product = await self.get_canonical_product(canonical_name)
        except PriceMatchError as e:
            return ApiResult.from_error(e)

        return ApiResult.ok(f"Found {len(product.matches)} price matches.", list(product.matches))

    async def get_canonical_product(self, canonical_name: str) -> CanonicalProduct:
        """
        Read a canonical product and all of its matches.

        Args:
            canonical_name: Product name (normalized before lookup)

        Returns:
            CanonicalProduct snapshot

        Raises:
            ValidationError: Blank name
            NotFound: No canonical product with that name
            PersistenceError: Any storage fault
        """
        name = normalize_name(canonical_name or '')
        if not name:
            raise ValidationError("Product name must not be empty.")

        async with self._slots:
            product_rows = await self._execute(
                self.client.table(CANONICAL_TABLE).select('id, name').eq('name', name).limit(1),
                'loading product',
                name,
            )
            if not product_rows.data:
                raise NotFound(f"No product named '{name}'.")

            canonical_id = product_rows.data[0]['id']
            match_rows = await self._execute(
                self.client.table(MATCHES_TABLE)
                .select('provider_product_id, product_url, provider_name')
                .eq('canonical_id', canonical_id),
                'loading price matches for',
                name,
            )

        matches = tuple(
            ProductMatch(
                provider_product_id=int(row['provider_product_id']),
                product_url=row['product_url'],
                provider_name=row['provider_name'],
            )
            for row in match_rows.data or []
        )
        return CanonicalProduct(id=canonical_id, name=name, matches=matches)

    async def _execute(self, query, action: str, name: str):
        try:
            return await query.execute()
        except Exception as e:
            # Library error text stays in the log, never in the result
            logger.error("Storage error %s '%s': %s: %s", action, name, type(e).__name__, e)
            raise PersistenceError(f"Error {action} '{name}'.") from e


def _scalar(data) -> Optional[int]:
    if isinstance(data, list):
        data = data[0] if data else None
    if isinstance(data, dict):
        data = next(iter(data.values()), None)
    return int(data) if data is not None else None
