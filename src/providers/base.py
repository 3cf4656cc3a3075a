"""
Store Provider
Configuration value identifying one store search backend
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Provider:
    """
    A store search backend reachable over HTTP.

    Attributes:
        name: Store name as shown to users and stored with matches
            (e.g., 'Kaufland', 'Carrefour')
        endpoint: Base URL of the store API, always ending in '/'.
            Searches go to '{endpoint}search?query=<term>'.
    """

    name: str
    endpoint: str

    def __post_init__(self):
        if not self.endpoint.endswith('/'):
            # frozen dataclass, so bypass __setattr__
            object.__setattr__(self, 'endpoint', self.endpoint + '/')
