"""
Result Envelope
Uniform response shape returned by every public price-matching operation
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class StatusHint(Enum):
    """Coarse outcome category, mapped to an HTTP status by the web layer."""

    OK = 'OK'
    NOT_FOUND = 'NotFound'
    BAD_INPUT = 'BadInput'
    UPSTREAM = 'Upstream'
    INTERNAL = 'Internal'

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]


_HTTP_STATUS = {
    StatusHint.OK: 200,
    StatusHint.NOT_FOUND: 404,
    StatusHint.BAD_INPUT: 400,
    StatusHint.UPSTREAM: 502,
    StatusHint.INTERNAL: 500,
}


@dataclass(frozen=True)
class ApiResult:
    """
    Outcome of one operation.

    Attributes:
        success: Whether the operation produced its payload
        status_hint: Outcome category
        message: Human readable summary, never raw library error text
        data: Payload (product list, single product, match list) or None
        diagnostics: Absorbed per-provider failures, one dict per failure
            with keys 'provider', 'kind' and 'message'
        error_kind: Stable error kind (e.g. 'AllProvidersUnreachable') when
            success is False
    """

    success: bool
    status_hint: StatusHint
    message: str
    data: Any = None
    diagnostics: Tuple[Dict[str, str], ...] = ()
    error_kind: Optional[str] = None

    @classmethod
    def ok(cls, message: str, data: Any = None, diagnostics=()) -> 'ApiResult':
        return cls(
            success=True,
            status_hint=StatusHint.OK,
            message=message,
            data=data,
            diagnostics=tuple(diagnostics),
        )

    @classmethod
    def from_error(cls, error, diagnostics=()) -> 'ApiResult':
        """
        Build a failed result from a PriceMatchError.

        Args:
            error: PriceMatchError instance (carries its own status hint)
            diagnostics: Per-provider failures collected before the error

        Returns:
            ApiResult with success=False
        """
        return cls(
            success=False,
            status_hint=error.status_hint,
            message=error.message,
            diagnostics=tuple(diagnostics),
            error_kind=error.kind,
        )

    def to_dict(self) -> Dict:
        """
        Render the JSON envelope handed to the HTTP layer.

        Products and matches are rendered through their own to_dict().
        """
        body = {
            'success': self.success,
            'status': self.status_hint.http_status,
            'statusHint': self.status_hint.value,
            'message': self.message,
        }
        if self.error_kind:
            body['error'] = self.error_kind
        if self.data is not None:
            body['data'] = _render(self.data)
        if self.diagnostics:
            body['diagnostics'] = list(self.diagnostics)
        return body


def _render(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [_render(item) for item in value]
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    return value
