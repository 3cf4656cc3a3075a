"""
Provider Registry
Ordered, immutable set of configured store providers
"""

from typing import Dict, Iterable, Iterator, List, Optional

from src.errors import ConfigurationError
from src.providers.base import Provider


class ProviderRegistry:
    """
    Registry for all configured store providers.

    Built once at startup and injected into the aggregator and the resolver.
    Iteration order is configuration order, which is also the merge order
    used when prices tie.
    """

    def __init__(self, providers: Iterable[Provider] = ()):
        """
        Initialize registry.

        Args:
            providers: Providers in configuration order

        Raises:
            ConfigurationError: If two providers share a name
        """
        self._providers: Dict[str, Provider] = {}
        for provider in providers:
            self._register(provider)

    def _register(self, provider: Provider) -> None:
        name = provider.name.upper()

        if name in self._providers:
            raise ConfigurationError(f"Provider '{provider.name}' is configured more than once")

        self._providers[name] = provider

    def get_by_name(self, name: str) -> Optional[Provider]:
        """
        Get provider by store name (case-insensitive).

        Args:
            name: Store name (e.g., 'Kaufland')

        Returns:
            Provider if found, None otherwise
        """
        return self._providers.get(name.upper())

    def endpoint_for(self, provider_name: str, fallback_url: str = '') -> Optional[str]:
        """
        Resolve the search endpoint for a stored match.

        Tries to match by:
        1. Configured provider name
        2. The match's own URL, when it is an http(s) URL

        Args:
            provider_name: Store name saved with the match
            fallback_url: URL saved with the match

        Returns:
            Endpoint URL ending in '/', or None if neither source is usable
        """
        provider = self.get_by_name(provider_name)
        if provider:
            return provider.endpoint

        if fallback_url.startswith(('http://', 'https://')):
            return fallback_url if fallback_url.endswith('/') else fallback_url + '/'

        return None

    def get_all(self) -> List[Provider]:
        return list(self._providers.values())

    def get_names(self) -> List[str]:
        return [provider.name for provider in self._providers.values()]

    def __iter__(self) -> Iterator[Provider]:
        return iter(self._providers.values())

    def __len__(self) -> int:
        return len(self._providers)

    def __repr__(self) -> str:
        """String representation of registry"""
        return f"ProviderRegistry({len(self)} providers: {', '.join(self.get_names())})"
