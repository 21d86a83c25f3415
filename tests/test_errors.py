import pytest

from werkaholic_scan.errors import (
    ClassifierError,
    FailureKind,
    RateLimitedError,
    classify_failure,
)


def test_rate_limited_error_is_always_rate_limited():
    assert classify_failure(RateLimitedError("slow down")) is FailureKind.RATE_LIMITED


@pytest.mark.parametrize(
    "exc",
    [
        RuntimeError("HTTP 429 Too Many Requests"),
        RuntimeError("An error occurred (ThrottlingException) when calling InvokeModel"),
        ValueError({"code": 429}),
        ValueError({"error": {"status": "RESOURCE_EXHAUSTED"}}),
    ],
)
def test_rate_limit_markers_are_detected_on_foreign_errors(exc):
    assert classify_failure(exc) is FailureKind.RATE_LIMITED


@pytest.mark.parametrize(
    "exc",
    [
        ClassifierError("connection reset by peer"),
        TimeoutError("read timed out"),
        ValueError("Expecting value: line 1 column 1"),
    ],
)
def test_other_failures_are_transient(exc):
    assert classify_failure(exc) is FailureKind.TRANSIENT


@pytest.mark.parametrize(
    "exc",
    [
        ClassifierError(
            "Failed to parse vision response: Expecting ',' delimiter",
            '{"item_detected": true, "title": "Akkuschrauber", "price_estimate": "429€"',
        ),
        ClassifierError("Failed to parse Gemini response: missing title", "Bosch GSB 18V-429"),
        ClassifierError("Gemini returned HTTP 500", {"status": 500, "error": {"message": "429 internal"}}),
    ],
)
def test_classifier_errors_with_marker_text_in_payload_are_transient(exc):
    assert classify_failure(exc) is FailureKind.TRANSIENT


def test_response_attribute_is_inspected():
    exc = RuntimeError("request failed")
    exc.response = {"status": 429}
    assert classify_failure(exc) is FailureKind.RATE_LIMITED
