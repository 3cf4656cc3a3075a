"""
Provider Search Client
Performs one HTTP search against one store backend and parses the response
into RawProduct records.

Expected response body:
    {
        "results": [{"products": [{"id": 1, "name": "...", "price": 5.2, "imageUrl": "..."}]}],
        "totalProducts": 1
    }

Only results[0].products is read. No retries happen here; a failed call is
reported to the caller as ProviderUnreachable or ProviderMalformedResponse.
"""

import asyncio
import json
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

import aiohttp
import pydantic
from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, confloat

from src.errors import ProviderMalformedResponse, ProviderUnreachable
from src.models import RawProduct

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class _WireProduct(BaseModel):
    model_config = ConfigDict(extra='ignore', allow_inf_nan=False)

    id: StrictInt
    name: StrictStr
    # json.loads accepts NaN and Infinity, which cannot be ordered by price
    price: Union[StrictInt, confloat(strict=True, allow_inf_nan=False)]
    imageUrl: StrictStr


class _WireResultPage(BaseModel):
    model_config = ConfigDict(extra='ignore')

    products: List[_WireProduct]


class _WireSearchResponse(BaseModel):
    model_config = ConfigDict(extra='ignore')

    # Pages past the first are never read, so they are not validated either
    results: List[Dict[str, Any]]
    totalProducts: StrictInt


def parse_search_response(payload: Any, provider_name: Optional[str] = None) -> List[RawProduct]:
    """
    Validate a decoded provider response and extract its products.

    Args:
        payload: Decoded JSON body
        provider_name: Store name, only used in error messages

    Returns:
        List[RawProduct]: Products from results[0], in provider order

    Raises:
        ProviderMalformedResponse: If the body does not match the search shape
            or 'results' is empty
    """
    label = provider_name or 'provider'

    try:
        response = _WireSearchResponse.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ProviderMalformedResponse(
            f"{label} returned an unexpected search response ({e.error_count()} invalid fields)",
            provider_name,
        ) from e

    if not response.results:
        raise ProviderMalformedResponse(f"{label} returned no result pages", provider_name)

    try:
        page = _WireResultPage.model_validate(response.results[0])
    except pydantic.ValidationError as e:
        raise ProviderMalformedResponse(
            f"{label} returned malformed products ({e.error_count()} invalid fields)",
            provider_name,
        ) from e

    return [
        RawProduct(
            provider_product_id=product.id,
            name=product.name,
            # str() first so 5.2 stays 5.2 rather than its binary expansion
            price=Decimal(str(product.price)),
            image_url=product.imageUrl,
        )
        for product in page.products
    ]


class ProviderClient:
    """
    HTTP client for the uniform store search contract.

    A single instance is shared by the aggregator and the resolver. Callers
    that fan out open one session with `session()` and pass it to every
    `search` call of that fan-out; `search` without a session opens its own.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        """
        Args:
            timeout: Total per-call timeout in seconds (connect + read)
        """
        self.timeout = timeout

    def session(self) -> aiohttp.ClientSession:
        """Create a session bound by the per-call timeout. Use with `async with`."""
        return aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout),
            headers={'Accept': 'application/json'},
        )

    async def search(self, endpoint: str, query: str, provider_name: Optional[str] = None,
                     session: Optional[aiohttp.ClientSession] = None) -> List[RawProduct]:
        """
        Query one store's search endpoint.

        Args:
            endpoint: Store API base URL ending in '/'
            query: Search term, sent as-is
            provider_name: Store name for error messages and logs
            session: Open session to reuse (optional)

        Returns:
            List[RawProduct]: Parsed products, unfiltered

        Raises:
            ProviderUnreachable: Network error, timeout or non-200 status
            ProviderMalformedResponse: Body is not valid JSON of the expected shape
        """
        if session is None:
            async with self.session() as own_session:
                return await self._search(own_session, endpoint, query, provider_name)
        return await self._search(session, endpoint, query, provider_name)

    async def _search(self, session: aiohttp.ClientSession, endpoint: str, query: str,
                      provider_name: Optional[str]) -> List[RawProduct]:
        label = provider_name or endpoint
        url = endpoint + 'search'

        try:
            async with session.get(url, params={'query': query}) as response:
                if response.status != 200:
                    raise ProviderUnreachable(
                        f"{label} answered with HTTP {response.status}",
                        provider_name,
                    )
                body = await response.read()
        except asyncio.TimeoutError as e:
            raise ProviderUnreachable(f"{label} timed out after {self.timeout:g}s", provider_name) from e
        except aiohttp.ClientError as e:
            raise ProviderUnreachable(f"{label} could not be reached ({type(e).__name__})", provider_name) from e

        try:
            payload = json.loads(body)
        except ValueError as e:
            raise ProviderMalformedResponse(f"{label} returned a body that is not JSON", provider_name) from e

        products = parse_search_response(payload, provider_name)
        logger.debug("%s returned %s products for %r", label, len(products), query)
        return products
