"""
Outcome reports and their delivery

Exactly one OutcomeReport is produced per lifecycle event. Reporters deliver
it: over HTTP to the orchestrator's pre-signed response URL, or to a plain
callable for local runs and tests.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

import requests

from seedsync.exceptions import ResponseDeliveryError
from seedsync.lifecycle.events import resolve_physical_resource_id

logger = logging.getLogger(__name__)

MAX_REASON_LENGTH = 1024


class OutcomeStatus(Enum):
    """Outcome of handling a lifecycle event."""
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


@dataclass
class OutcomeReport:
    """The single success/failure signal sent back per lifecycle event."""

    status: OutcomeStatus
    data: Dict[str, Any] = field(default_factory=dict)
    reason: str = ""
    physical_resource_id: Optional[str] = None

    @classmethod
    def success(
        cls,
        data: Optional[Dict[str, Any]] = None,
        physical_resource_id: Optional[str] = None
    ) -> "OutcomeReport":
        return cls(OutcomeStatus.SUCCESS, dict(data or {}), "", physical_resource_id)

    @classmethod
    def failure(
        cls,
        reason: str,
        physical_resource_id: Optional[str] = None
    ) -> "OutcomeReport":
        return cls(OutcomeStatus.FAILED, {}, reason, physical_resource_id)

    @property
    def succeeded(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS

    def to_callback_payload(self) -> Dict[str, Any]:
        """Transport-neutral shape: ``{status, data}``."""
        return {"status": self.status.value, "data": dict(self.data)}


class Reporter(ABC):
    """Delivers an outcome report for a raw lifecycle event."""

    @abstractmethod
    def send(self, event: Mapping[str, Any], report: OutcomeReport) -> None:
        """
        Deliver the report.

        Raises:
            ResponseDeliveryError: If delivery fails
        """


class CallbackReporter(Reporter):
    """Hands the ``{status, data}`` payload to a callable."""

    def __init__(self, callback: Callable[[Dict[str, Any]], Any]):
        self.callback = callback

    def send(self, event: Mapping[str, Any], report: OutcomeReport) -> None:
        self.callback(report.to_callback_payload())


class HttpResponseReporter(Reporter):
    """
    Delivers reports with an HTTP PUT to the event's ResponseURL.

    The body follows the orchestrator's custom-resource response format. The
    pre-signed URL is signed for an empty content type, so the header is sent
    empty on purpose.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        log_stream_name: Optional[str] = None,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the reporter.

        Args:
            timeout: Seconds to wait for the orchestrator endpoint
            log_stream_name: Log stream referenced in the default reason
            session: requests session (a new one if not provided)
        """
        self.timeout = timeout
        self.log_stream_name = log_stream_name
        self.session = session or requests.Session()

    def build_body(self, event: Mapping[str, Any], report: OutcomeReport) -> Dict[str, Any]:
        """Build the JSON document sent to the orchestrator."""
        reason = report.reason
        if not reason and self.log_stream_name:
            reason = f"See the details in log stream: {self.log_stream_name}"
        if len(reason) > MAX_REASON_LENGTH:
            reason = reason[:MAX_REASON_LENGTH - 3] + "..."

        return {
            "Status": report.status.value,
            "Reason": reason,
            "PhysicalResourceId": report.physical_resource_id or resolve_physical_resource_id(event),
            "StackId": event.get("StackId"),
            "RequestId": event.get("RequestId"),
            "LogicalResourceId": event.get("LogicalResourceId"),
            "NoEcho": False,
            "Data": dict(report.data),
        }

    def send(self, event: Mapping[str, Any], report: OutcomeReport) -> None:
        url = event.get("ResponseURL") if isinstance(event, Mapping) else None
        if not url:
            raise ResponseDeliveryError("Event has no ResponseURL to deliver the outcome to")

        body = json.dumps(self.build_body(event, report))
        headers = {
            "content-type": "",
            "content-length": str(len(body)),
        }

        try:
            response = self.session.put(url, data=body, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to deliver {report.status.value} outcome: {e}")
            raise ResponseDeliveryError(f"Outcome delivery failed: {e}") from e

        logger.info(f"Delivered {report.status.value} outcome (HTTP {response.status_code})")


class OnceReporter(Reporter):
    """
    Lets exactly one report through; later sends are dropped.

    Shared between the dispatcher and the timeout guard, which run on
    different threads. A report only counts as sent once the inner reporter
    delivered it, so after a failed delivery another report (e.g. the timeout
    guard's FAILED) can still go out.
    """

    def __init__(self, inner: Reporter):
        self.inner = inner
        self.sent_report: Optional[OutcomeReport] = None
        self._lock = threading.Lock()

    @property
    def sent(self) -> bool:
        return self.sent_report is not None

    def send(self, event: Mapping[str, Any], report: OutcomeReport) -> None:
        with self._lock:
            if self.sent_report is not None:
                logger.warning(
                    f"Dropping {report.status.value} outcome: "
                    f"{self.sent_report.status.value} was already reported"
                )
                return
            self.inner.send(event, report)
            self.sent_report = report
