"""
Unit tests for outcome reports and reporters.
"""

import json
import threading
from unittest.mock import Mock

import pytest
import requests

from seedsync.exceptions import ResponseDeliveryError
from seedsync.lifecycle.response import (
    MAX_REASON_LENGTH,
    CallbackReporter,
    HttpResponseReporter,
    OnceReporter,
    OutcomeReport,
    OutcomeStatus,
)
from tests.conftest import make_event


class TestOutcomeReport:
    """Test OutcomeReport constructors."""

    def test_success(self):
        report = OutcomeReport.success(physical_resource_id="pid")

        assert report.succeeded
        assert report.to_callback_payload() == {"status": "SUCCESS", "data": {}}

    def test_failure(self):
        report = OutcomeReport.failure("boom")

        assert not report.succeeded
        assert report.status is OutcomeStatus.FAILED
        assert report.reason == "boom"
        assert report.to_callback_payload() == {"status": "FAILED", "data": {}}

    def test_payload_data_is_copied(self):
        """Test the payload does not share the report's data dict."""
        report = OutcomeReport.success(data={"a": 1})

        payload = report.to_callback_payload()
        payload["data"]["a"] = 2

        assert report.data == {"a": 1}


class TestCallbackReporter:
    """Test the callable reporter."""

    def test_callback_receives_payload(self):
        received = []
        CallbackReporter(received.append).send(make_event(), OutcomeReport.success())

        assert received == [{"status": "SUCCESS", "data": {}}]


class TestHttpResponseReporter:
    """Test delivery to the pre-signed ResponseURL."""

    @pytest.fixture
    def session(self):
        """Mock requests session returning HTTP 200."""
        session = Mock()
        session.put.return_value = Mock(status_code=200)
        return session

    @pytest.fixture
    def reporter(self, session):
        return HttpResponseReporter(timeout=3.0, log_stream_name="stream-1", session=session)

    def test_put_to_response_url(self, reporter, session):
        """Test the PUT goes to ResponseURL with an empty content type."""
        event = make_event()

        reporter.send(event, OutcomeReport.success(physical_resource_id="seed:MyTable1:Id"))

        args, kwargs = session.put.call_args
        assert args[0] == event["ResponseURL"]
        assert kwargs["headers"]["content-type"] == ""
        assert kwargs["headers"]["content-length"] == str(len(kwargs["data"]))
        assert kwargs["timeout"] == 3.0

    def test_body_shape(self, reporter, session):
        """Test the response document fields."""
        reporter.send(make_event(), OutcomeReport.success(physical_resource_id="seed:MyTable1:Id"))

        body = json.loads(session.put.call_args.kwargs["data"])
        assert body == {
            "Status": "SUCCESS",
            "Reason": "See the details in log stream: stream-1",
            "PhysicalResourceId": "seed:MyTable1:Id",
            "StackId": "arn:aws:cloudformation:eu-west-1:123456789012:stack/seed/guid",
            "RequestId": "req-0001",
            "LogicalResourceId": "PopulateMyTable",
            "NoEcho": False,
            "Data": {},
        }

    def test_failure_reason_is_sent(self, reporter):
        body = reporter.build_body(make_event(), OutcomeReport.failure("bad items"))

        assert body["Status"] == "FAILED"
        assert body["Reason"] == "bad items"

    def test_physical_id_falls_back_to_event(self, reporter):
        """Test a report without an id uses the id derived from the event."""
        body = reporter.build_body(make_event(), OutcomeReport.failure("x"))

        assert body["PhysicalResourceId"] == "seed:MyTable1:Id"

    def test_long_reason_truncated(self, reporter):
        body = reporter.build_body(make_event(), OutcomeReport.failure("x" * 5000))

        assert len(body["Reason"]) == MAX_REASON_LENGTH
        assert body["Reason"].endswith("...")

    def test_missing_response_url(self, reporter, session):
        """Test events without ResponseURL cannot be reported."""
        event = make_event()
        del event["ResponseURL"]

        with pytest.raises(ResponseDeliveryError):
            reporter.send(event, OutcomeReport.success())

        session.put.assert_not_called()

    def test_http_error_raises_delivery_error(self, reporter, session):
        """Test a non-2xx response is a delivery failure."""
        response = Mock(status_code=403)
        response.raise_for_status.side_effect = requests.HTTPError("403 Forbidden")
        session.put.return_value = response

        with pytest.raises(ResponseDeliveryError, match="403"):
            reporter.send(make_event(), OutcomeReport.success())

    def test_connection_error_raises_delivery_error(self, reporter, session):
        session.put.side_effect = requests.ConnectionError("refused")

        with pytest.raises(ResponseDeliveryError):
            reporter.send(make_event(), OutcomeReport.success())


class TestOnceReporter:
    """Test the exactly-once latch."""

    def test_only_first_report_delivered(self):
        received = []
        reporter = OnceReporter(CallbackReporter(received.append))

        reporter.send(make_event(), OutcomeReport.success())
        reporter.send(make_event(), OutcomeReport.failure("late"))

        assert received == [{"status": "SUCCESS", "data": {}}]
        assert reporter.sent
        assert reporter.sent_report.succeeded

    def test_not_sent_initially(self):
        assert not OnceReporter(Mock()).sent

    def test_failed_delivery_does_not_latch(self):
        """Test a later report can still go out after a delivery failed."""
        inner = Mock()
        inner.send.side_effect = [ResponseDeliveryError("down"), None]
        reporter = OnceReporter(inner)

        with pytest.raises(ResponseDeliveryError):
            reporter.send(make_event(), OutcomeReport.success())
        assert not reporter.sent

        reporter.send(make_event(), OutcomeReport.failure("timed out"))

        assert inner.send.call_count == 2
        assert reporter.sent_report.status is OutcomeStatus.FAILED

    def test_concurrent_sends(self):
        """Test only one of many threads gets through."""
        received = []
        reporter = OnceReporter(CallbackReporter(received.append))
        threads = [
            threading.Thread(target=reporter.send, args=(make_event(), OutcomeReport.success()))
            for _ in range(10)
        ]

        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(received) == 1
