"""
Error taxonomy for remote backend calls.

Failures are classified by substring matching on the lowercased message, in a
fixed order, into one of the ``ErrorType`` members.
"""

from __future__ import annotations

from designscout.models import ErrorType

# Checked in order; first match wins.
_CLASSIFICATION_RULES: list[tuple[ErrorType, tuple[str, ...]]] = [
    (ErrorType.TIMEOUT, ("timeout", "timed out")),
    (ErrorType.NETWORK, ("network", "connection")),
    (ErrorType.ELEMENT_NOT_FOUND, ("element not found", "selector")),
    (ErrorType.NAVIGATION, ("navigation", "page")),
    (ErrorType.PERMISSION, ("permission", "access")),
    (ErrorType.RATE_LIMIT, ("rate limit", "too many")),
]


def classify_error(error: BaseException | str) -> ErrorType:
    """Classify a failure message into the gateway error taxonomy."""
    message = str(error).lower()
    for error_type, needles in _CLASSIFICATION_RULES:
        if any(needle in message for needle in needles):
            return error_type
    return ErrorType.UNKNOWN


class BackendError(Exception):
    """Raw failure reported by a remote backend transport."""

    def __init__(self, message: str, tool_name: str | None = None) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class GatewayError(Exception):
    """A remote call failed for good, after retries or without being retryable."""

    def __init__(
        self,
        tool_name: str,
        error_type: ErrorType,
        attempts: int,
        original_message: str,
    ) -> None:
        plural = "attempt" if attempts == 1 else "attempts"
        super().__init__(
            f"{tool_name} failed after {attempts} {plural}: {original_message} ({error_type})"
        )
        self.tool_name = tool_name
        self.error_type = error_type
        self.attempts = attempts
        self.original_message = original_message


class UrlWaitTimeoutError(GatewayError):
    """The session URL never matched the expected pattern."""

    def __init__(self, pattern: str, timeout_ms: int, last_url: str, polls: int) -> None:
        super().__init__(
            "wait_for_url",
            ErrorType.TIMEOUT,
            polls,
            f"URL did not match pattern {pattern!r} within {timeout_ms}ms (last: {last_url!r})",
        )
        self.pattern = pattern
        self.timeout_ms = timeout_ms
        self.last_url = last_url


__all__ = [
    "BackendError",
    "ErrorType",
    "GatewayError",
    "UrlWaitTimeoutError",
    "classify_error",
]
