"""Tests for error classification and message sanitizing."""

import asyncio

import httpx
import openai

from scoring.errors import (
    InsufficientData,
    SchemaViolation,
    ScoringTimeout,
    ConfigurationError,
    ScoringError,
    classify_error,
    sanitize,
    to_scoring_error,
)


def _response(status: int) -> httpx.Response:
    request = httpx.Request("POST", "https://api.example.test/v1/responses")
    return httpx.Response(status, request=request)


def test_sanitize_keeps_first_non_empty_line():
    message = "\n\n  boom:   something   broke \nTraceback (most recent call last):\n  File x"
    assert sanitize(message) == "boom: something broke"


def test_sanitize_truncates():
    cleaned = sanitize("x" * 500, limit=20)
    assert len(cleaned) == 20
    assert cleaned.endswith("...")


def test_sanitize_empty_message():
    assert sanitize("   \n  ") == "no details"


def test_scoring_errors_keep_their_kind():
    failure = classify_error(InsufficientData("agent_1", 3, 5))
    assert failure.kind == "InsufficientData"
    assert failure.as_error_text() == (
        "InsufficientData: agent agent_1 has 3 conversations, need at least 5"
    )
    assert failure.fatal is False


def test_schema_violation_text():
    failure = classify_error(SchemaViolation("risk_score"))
    assert failure.as_error_text() == "SchemaViolation: missing key 'risk_score'"


def test_timeouts_classified():
    assert classify_error(asyncio.TimeoutError()).kind == "Timeout"
    assert classify_error(ScoringTimeout("read took too long")).kind == "Timeout"
    request = httpx.Request("POST", "https://api.example.test/v1/responses")
    assert classify_error(openai.APITimeoutError(request=request)).kind == "Timeout"


def test_configuration_error_is_fatal():
    failure = classify_error(ConfigurationError("OPENAI_API_KEY is not set"))
    assert failure.fatal is True
    assert failure.kind == "ConfigurationError"


def test_rejected_credentials_are_fatal():
    exc = openai.AuthenticationError("bad key", response=_response(401), body=None)
    failure = classify_error(exc)
    assert failure.kind == "ConfigurationError"
    assert failure.fatal is True
    assert "401" in failure.message


def test_other_http_errors_are_unknown():
    exc = openai.InternalServerError("upstream exploded", response=_response(500), body=None)
    failure = classify_error(exc)
    assert failure.kind == "Unknown"
    assert failure.message == "AI service returned HTTP 500"


def test_connection_error_is_unknown():
    request = httpx.Request("POST", "https://api.example.test/v1/responses")
    failure = classify_error(openai.APIConnectionError(request=request))
    assert failure.kind == "Unknown"
    assert failure.message == "AI service unreachable"


def test_unexpected_exception_is_unknown_with_type():
    failure = classify_error(KeyError("items"))
    assert failure.kind == "Unknown"
    assert failure.message.startswith("KeyError:")


def test_to_scoring_error_wraps_timeouts():
    wrapped = to_scoring_error(asyncio.TimeoutError())
    assert isinstance(wrapped, ScoringTimeout)

    generic = to_scoring_error(ValueError("odd"))
    assert type(generic) is ScoringError
