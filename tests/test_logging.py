"""Structured JSON log lines."""

import json
import logging
import sys

from redcloud.core.logging import JsonLogFormatter, principal_ctx_var, request_id_ctx_var


def _record(message, exc_info=None, **extra_data):
    record = logging.LogRecord("redcloud.tests", logging.INFO, __file__, 1, message, (), exc_info)
    if extra_data:
        record.extra_data = extra_data
    return record


def test_line_carries_request_context_and_extra_fields():
    request_token = request_id_ctx_var.set("req-123")
    principal_token = principal_ctx_var.set("user:42")
    try:
        line = JsonLogFormatter().format(_record("task.created", task_id="t-1", count=2))
    finally:
        principal_ctx_var.reset(principal_token)
        request_id_ctx_var.reset(request_token)

    payload = json.loads(line)
    assert payload["message"] == "task.created"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "redcloud.tests"
    assert payload["request_id"] == "req-123"
    assert payload["principal"] == "user:42"
    assert payload["task_id"] == "t-1"
    assert payload["count"] == 2
    assert payload["timestamp"].endswith("Z")
    assert "exception" not in payload


def test_context_fields_are_omitted_outside_a_request():
    payload = json.loads(JsonLogFormatter().format(_record("startup")))
    assert "request_id" not in payload
    assert "principal" not in payload


def test_exceptions_are_formatted():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        line = JsonLogFormatter().format(_record("request.failed", exc_info=sys.exc_info()))

    payload = json.loads(line)
    assert "RuntimeError: boom" in payload["exception"]
