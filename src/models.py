"""
Product Models
Typed shapes that flow between provider clients, the aggregator and the match store
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, FrozenSet, Tuple


def normalize_name(value: str) -> str:
    """
    Normalize a search term or canonical product name.

    Args:
        value: Raw user-supplied term (e.g., '  Milk 1L ')

    Returns:
        str: Trimmed, lower-cased term (e.g., 'milk 1l')
    """
    return value.strip().lower()


@dataclass(frozen=True)
class RawProduct:
    """A product exactly as one provider returned it, before store attribution."""

    provider_product_id: int
    name: str
    price: Decimal
    image_url: str

    def attribute(self, provider_name: str, provider_endpoint: str) -> 'AttributedProduct':
        return AttributedProduct(
            provider_product_id=self.provider_product_id,
            name=self.name,
            price=self.price,
            image_url=self.image_url,
            provider_name=provider_name,
            provider_endpoint=provider_endpoint,
        )


@dataclass(frozen=True)
class AttributedProduct:
    """A provider product tagged with the store it came from."""

    provider_product_id: int
    name: str
    price: Decimal
    image_url: str
    provider_name: str
    provider_endpoint: str

    def to_dict(self) -> Dict:
        """Render using the wire names the storefront clients expect."""
        return {
            'id': self.provider_product_id,
            'name': self.name,
            'price': float(self.price),
            'imageUrl': self.image_url,
            'store': self.provider_name,
            'url': self.provider_endpoint,
        }


@dataclass(frozen=True)
class ProductMatch:
    """One store's reference to a canonical product."""

    provider_product_id: int
    product_url: str
    provider_name: str

    @property
    def key(self) -> Tuple[int, str]:
        # Uniqueness key within one canonical product
        return (self.provider_product_id, self.provider_name)

    def to_dict(self) -> Dict:
        return {
            'productId': self.provider_product_id,
            'url': self.product_url,
            'store': self.provider_name,
        }


@dataclass(frozen=True)
class CanonicalProduct:
    """
    Read-only snapshot of a persisted canonical product and its matches.

    Only valid for the duration of the request that loaded it.
    """

    id: int
    name: str
    matches: Tuple[ProductMatch, ...] = ()


@dataclass(frozen=True)
class FetchGroup:
    """
    All matched ids that live behind one provider endpoint.

    One group means one search call, however many matches it holds.
    """

    provider_endpoint: str
    provider_name: str
    provider_product_ids: FrozenSet[int] = field(default_factory=frozenset)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.provider_endpoint, self.provider_name)
