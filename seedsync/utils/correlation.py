"""
Correlation IDs for seedsync

Ties every log line of an invocation to the lifecycle event that caused it.
The orchestrator's RequestId is used when the event carries one, so log
lines can be matched with the stack event that triggered them.
"""

import contextvars
import logging
import uuid
from typing import Any, Mapping, Optional

_current_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'seedsync_correlation_id',
    default=None
)

MISSING_ID = "N/A"


def generate_correlation_id() -> str:
    """Fresh UUID4 string."""
    return str(uuid.uuid4())


def get_correlation_id() -> Optional[str]:
    return _current_id.get()


def set_correlation_id(correlation_id: str) -> None:
    """
    Bind a correlation ID to the current context.

    Raises:
        ValueError: If correlation_id is not a non-empty string
    """
    if not isinstance(correlation_id, str) or not correlation_id:
        raise ValueError("Correlation ID must be a non-empty string")
    _current_id.set(correlation_id)


def clear_correlation_id() -> None:
    _current_id.set(None)


def correlation_id_from_event(event: Any) -> str:
    """
    Pick the correlation ID for a lifecycle event.

    Args:
        event: Raw lifecycle event mapping

    Returns:
        The event's RequestId, or a fresh UUID when absent
    """
    if isinstance(event, Mapping):
        request_id = event.get("RequestId")
        if isinstance(request_id, str) and request_id:
            return request_id
    return generate_correlation_id()


class CorrelationContext:
    """
    Scope a correlation ID to a ``with`` block.

    The previous value (if any) is restored on exit.

    Usage:
        with CorrelationContext(event["RequestId"]) as correlation_id:
            dispatcher.dispatch(event)
    """

    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id or generate_correlation_id()
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> str:
        if not isinstance(self.correlation_id, str):
            raise ValueError("Correlation ID must be a non-empty string")
        self._token = _current_id.set(self.correlation_id)
        return self.correlation_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._token is not None:
            _current_id.reset(self._token)
            self._token = None
        return False


class CorrelationIdFilter(logging.Filter):
    """Stamps ``record.correlation_id`` on every record it sees."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or MISSING_ID
        return True


correlation_id_filter = CorrelationIdFilter()


def setup_correlation_logging(handler: logging.Handler) -> None:
    """Attach the correlation filter to a handler (once)."""
    if correlation_id_filter not in handler.filters:
        handler.addFilter(correlation_id_filter)
