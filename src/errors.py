"""
Price Matching Errors
Error taxonomy shared by provider clients, the aggregator and the match store
"""

from typing import Optional

from src.results import StatusHint


class PriceMatchError(Exception):
    """
    Base class for all expected failures.

    Each subclass carries a stable `kind` string and the status hint it maps
    to, so callers never need to inspect the message.
    """

    kind = 'PriceMatchError'
    status_hint = StatusHint.INTERNAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PriceMatchError):
    """Empty or blank search term / canonical name, or an empty match list."""

    kind = 'ValidationError'
    status_hint = StatusHint.BAD_INPUT


class NotFound(PriceMatchError):
    """Nothing matched anywhere in the pipeline."""

    kind = 'NotFound'
    status_hint = StatusHint.NOT_FOUND


class ProviderError(PriceMatchError):
    """Failure isolated to a single provider."""

    kind = 'ProviderError'
    status_hint = StatusHint.UPSTREAM

    def __init__(self, message: str, provider_name: Optional[str] = None):
        super().__init__(message)
        self.provider_name = provider_name


class ProviderUnreachable(ProviderError):
    """Network error, timeout or non-200 status from a provider."""

    kind = 'ProviderUnreachable'


class ProviderMalformedResponse(ProviderError):
    """Provider answered with a body that is not the expected search shape."""

    kind = 'ProviderMalformedResponse'


class AllProvidersUnreachable(PriceMatchError):
    """Every provider in a fan-out failed."""

    kind = 'AllProvidersUnreachable'
    status_hint = StatusHint.UPSTREAM


class PersistenceError(PriceMatchError):
    """Storage fault during read or write."""

    kind = 'PersistenceError'
    status_hint = StatusHint.INTERNAL


class ConfigurationError(PriceMatchError):
    """Invalid provider configuration or missing credentials."""

    kind = 'ConfigurationError'
    status_hint = StatusHint.INTERNAL
