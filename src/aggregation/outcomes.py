"""
Fan-out Outcomes
Runs one task per provider (or fetch group) and collects a typed outcome per task
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, Hashable, List, Optional

from src.errors import AllProvidersUnreachable, ProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderOutcome:
    """
    Result slot for one concurrent fetch.

    Exactly one of `value` / `error` is set.
    """

    key: Hashable
    provider_name: str
    value: Any = None
    error: Optional[ProviderError] = None

    @property
    def success(self) -> bool:
        return self.error is None

    def diagnostic(self) -> Dict[str, str]:
        return {
            'provider': self.provider_name,
            'kind': self.error.kind if self.error else 'OK',
            'message': self.error.message if self.error else '',
        }


async def _capture(key: Hashable, provider_name: str, awaitable: Awaitable) -> ProviderOutcome:
    try:
        value = await awaitable
    except ProviderError as e:
        logger.warning("provider %s failed: %s (%s)", provider_name, e.kind, e.message)
        return ProviderOutcome(key=key, provider_name=provider_name, error=e)
    return ProviderOutcome(key=key, provider_name=provider_name, value=value)


async def gather_outcomes(tasks: Dict[Hashable, Awaitable], names: Dict[Hashable, str]) -> List[ProviderOutcome]:
    """
    Run all awaitables concurrently and collect one outcome per key.

    Provider failures are captured in the outcome instead of raised. Any
    other exception propagates and cancels the remaining tasks, as does
    cancelling the caller.

    Args:
        tasks: Awaitable per key, in merge order
        names: Provider name per key (for diagnostics)

    Returns:
        List[ProviderOutcome]: One outcome per key, in the order of `tasks`
    """
    if not tasks:
        return []

    futures = [
        asyncio.ensure_future(_capture(key, names[key], awaitable))
        for key, awaitable in tasks.items()
    ]
    try:
        return list(await asyncio.gather(*futures))
    except BaseException:
        for future in futures:
            future.cancel()
        raise


def raise_if_all_failed(outcomes: List[ProviderOutcome], what: str = 'providers') -> None:
    """
    Escalate only when every fetch failed.

    Raises:
        AllProvidersUnreachable: If there was at least one outcome and none succeeded
    """
    if outcomes and not any(outcome.success for outcome in outcomes):
        failed = ', '.join(outcome.provider_name for outcome in outcomes)
        raise AllProvidersUnreachable(f"All {len(outcomes)} {what} failed ({failed})")


def diagnostics_for(outcomes: List[ProviderOutcome]) -> List[Dict[str, str]]:
    return [outcome.diagnostic() for outcome in outcomes if not outcome.success]
