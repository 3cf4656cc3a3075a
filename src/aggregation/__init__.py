"""
Aggregation Module
Concurrent multi-store search and cheapest-price resolution
"""

from src.aggregation.search import SearchAggregator
from src.aggregation.cheapest import CheapestResolver, build_fetch_groups

__all__ = [
    'SearchAggregator',
    'CheapestResolver',
    'build_fetch_groups',
]
