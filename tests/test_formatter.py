"""Tests for delivery log formatting."""

from __future__ import annotations

import json

from webhook_deliverer.delivery import DeliveryFailure, ResponseInfo
from webhook_deliverer.errors import DelivererErrorCode
from webhook_deliverer.formatter import (
    MAX_RETURN_VALUE_DEPTH,
    build_failure_log_item,
    build_success_log_item,
    describe_failure,
    format_error_message,
    format_headers,
    format_success_message,
)
from webhook_deliverer.models import LogStatus


class TestFormatSuccessMessage:
    """Tests for format_success_message."""

    def test_json_object_with_logs(self) -> None:
        """JSON object bodies are kept as returnValue and logs are lifted."""
        body = '{"logs": ["started", "done"], "result": {"ok": true}}'

        message = format_success_message('{"a": 1}', body)

        assert message["returnValue"] == {
            "logs": ["started", "done"],
            "result": {"ok": True},
        }
        assert message["logs"] == ["started", "done"]
        assert message["event"] == '{"a": 1}'

    def test_json_object_without_logs(self) -> None:
        """Missing logs default to an empty list."""
        message = format_success_message("{}", '{"result": 1}')

        assert message["returnValue"] == {"result": 1}
        assert message["logs"] == []

    def test_logs_value_is_not_coerced(self) -> None:
        """A non-list logs value is extracted unchanged."""
        message = format_success_message("{}", '{"logs": "single line"}')

        assert message["logs"] == "single line"

    def test_plain_text_body(self) -> None:
        """Non-JSON bodies are wrapped as rawResponse."""
        message = format_success_message("{}", "plain text")

        assert message["returnValue"] == {"rawResponse": "plain text"}
        assert message["logs"] == []

    def test_json_array_body(self) -> None:
        """Valid JSON that is not an object is wrapped too."""
        message = format_success_message("{}", "[1,2,3]")

        assert message["returnValue"] == {"rawResponse": "[1,2,3]"}
        assert message["logs"] == []

    def test_json_scalar_body(self) -> None:
        """JSON scalars are wrapped with the original text."""
        message = format_success_message("{}", '"quoted"')

        assert message["returnValue"] == {"rawResponse": '"quoted"'}

    def test_empty_body(self) -> None:
        """An empty body is a raw response, not an error."""
        message = format_success_message("{}", "")

        assert message["returnValue"] == {"rawResponse": ""}
        assert message["logs"] == []

    def test_payload_embedded_verbatim(self) -> None:
        """The payload stays a string even when it is JSON."""
        payload = '{"nested": {"x": [1, 2]}}'

        message = format_success_message(payload, "ok")

        assert message["event"] == payload
        assert isinstance(message["event"], str)

    def test_key_order(self) -> None:
        """Messages serialize with event, logs, returnValue keys."""
        message = format_success_message("{}", "ok")

        assert list(message) == ["event", "logs", "returnValue"]

    def test_too_deep_to_parse(self) -> None:
        """Bodies nested past the parser's recursion limit stay raw."""
        body = "[" * 100000 + "]" * 100000

        message = format_success_message("{}", body)

        assert message["returnValue"] == {"rawResponse": body}
        assert message["logs"] == []

    def test_deeply_nested_object_kept_raw(self) -> None:
        """Objects nested past the depth limit are kept as raw text."""
        depth = MAX_RETURN_VALUE_DEPTH + 172
        body = '{"a": ' * depth + "1" + "}" * depth

        message = format_success_message("{}", body)

        assert message["returnValue"] == {"rawResponse": body}

    def test_nesting_within_limit_is_parsed(self) -> None:
        """Objects at the depth limit are still parsed."""
        depth = MAX_RETURN_VALUE_DEPTH
        body = '{"a": ' * depth + "1" + "}" * depth

        message = format_success_message("{}", body)

        assert message["returnValue"] == json.loads(body)

    def test_idempotent(self) -> None:
        """Formatting the same input twice yields the same message."""
        body = '{"logs": [1], "value": "x"}'

        first = format_success_message("payload", body)
        second = format_success_message("payload", body)

        assert first == second
        assert json.dumps(first) == json.dumps(second)


class TestFormatErrorMessage:
    """Tests for format_error_message and describe_failure."""

    def test_error_shape(self) -> None:
        """Error messages wrap the description."""
        assert format_error_message("boom") == {"error": "boom"}

    def test_format_headers(self) -> None:
        """Headers are joined in order with a pipe separator."""
        headers = [("X-A", "1"), ("X-B", "2"), ("X-A", "3")]

        assert format_headers(headers) == "X-A: 1 | X-B: 2 | X-A: 3"

    def test_format_headers_empty(self) -> None:
        """No headers yields an empty string."""
        assert format_headers([]) == ""

    def test_failure_with_response(self) -> None:
        """Rejected responses include status, body and headers."""
        failure = DeliveryFailure(
            url="https://x/hook",
            reason="HTTP 500",
            code=DelivererErrorCode.REJECTED_STATUS,
            response=ResponseInfo(
                status_code=500, body="oops", headers=(("X-Err", "1"),)
            ),
        )

        assert format_error_message(describe_failure(failure)) == {
            "error": "Call to https://x/hook failed with status 500, "
            "response body 'oops' and headers [X-Err: 1]"
        }

    def test_failure_with_response_without_body(self) -> None:
        """A missing body is rendered as an empty string."""
        failure = DeliveryFailure(
            url="https://x/hook",
            reason="HTTP 404",
            code=DelivererErrorCode.REJECTED_STATUS,
            response=ResponseInfo(status_code=404),
        )

        assert describe_failure(failure) == (
            "Call to https://x/hook failed with status 404, "
            "response body '' and headers []"
        )

    def test_failure_without_response(self) -> None:
        """Transport failures include the failure reason."""
        failure = DeliveryFailure(
            url="https://unreachable.example",
            reason="Timeout: timed out",
            code=DelivererErrorCode.TIMEOUT,
        )

        assert describe_failure(failure) == (
            "Call to https://unreachable.example failed with: Timeout: timed out"
        )


class TestBuildLogItems:
    """Tests for log item construction."""

    def test_success_log_item(self, make_job) -> None:
        """Success items copy identifiers and embed the success message."""
        job = make_job()

        item = build_success_log_item(job, 12, '{"logs": ["a"]}')

        assert item.status == LogStatus.SUCCESS
        assert item.project_id == job.project_id
        assert item.function_id == job.function_id
        assert item.request_id == job.request_id
        assert item.duration_ms == 12
        assert item.message == {
            "event": job.payload,
            "logs": ["a"],
            "returnValue": {"logs": ["a"]},
        }

    def test_success_log_item_without_body(self, make_job) -> None:
        """A response without body is treated as an empty raw response."""
        item = build_success_log_item(make_job(), 0, None)

        assert item.message["returnValue"] == {"rawResponse": ""}

    def test_failure_log_item(self, make_job) -> None:
        """Failure items carry the error message."""
        item = build_failure_log_item(make_job(), 5, "Call to x failed with: nope")

        assert item.status == LogStatus.FAILURE
        assert item.message == {"error": "Call to x failed with: nope"}

    def test_each_item_gets_fresh_id(self, make_job) -> None:
        """Identical outcomes produce distinct ids but identical messages."""
        job = make_job()

        first = build_success_log_item(job, 1, "ok")
        second = build_success_log_item(job, 1, "ok")

        assert first.id != second.id
        assert first.message == second.message
