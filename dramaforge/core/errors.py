"""
Error taxonomy for DramaForge.

Completion-provider failures are classified exactly once, at the agent call
boundary, into an ErrorKind with a fixed user-facing message. The core never
retries on its own apart from the single JSON-mode retry in BaseAgent.
"""

import asyncio
import json
from typing import Optional

import anthropic
import httpx
import openai

from ..models.schemas import ErrorKind


USER_MESSAGES = {
    ErrorKind.UNAUTHORIZED: "Missing or invalid API credentials. Check the API key for the configured provider.",
    ErrorKind.RATE_LIMITED: "The model provider is rate limiting requests. Please wait a moment and try again.",
    ErrorKind.TIMEOUT: "The model provider took too long to respond. Please try again.",
    ErrorKind.NETWORK_ERROR: "Could not reach the model provider. Check your network connection.",
    ErrorKind.MALFORMED_OUTPUT: "The model returned output that could not be understood.",
    ErrorKind.VALIDATION_EXHAUSTED: "Automatic fixing could not make the content pass consistency checks.",
    ErrorKind.GENERIC: "Something went wrong while talking to the model provider.",
}


def user_message(kind: ErrorKind) -> str:
    return USER_MESSAGES.get(kind, USER_MESSAGES[ErrorKind.GENERIC])


# ============================================================================
# Exceptions
# ============================================================================

class DramaForgeError(Exception):
    """Base class for errors raised by the stage engine."""
    kind: ErrorKind = ErrorKind.GENERIC

    def __init__(self, message: str = "", kind: Optional[ErrorKind] = None):
        if kind is not None:
            self.kind = kind
        super().__init__(message or user_message(self.kind))

    @property
    def user_message(self) -> str:
        return user_message(self.kind)


class ProviderError(DramaForgeError):
    """A completion-provider call failed; kind says how."""

    def __init__(self, message: str, kind: ErrorKind, cause: Optional[BaseException] = None):
        super().__init__(message, kind)
        self.cause = cause

    @classmethod
    def from_exception(cls, exc: BaseException, context: str = "") -> "ProviderError":
        kind = classify_error(exc)
        prefix = f"{context}: " if context else ""
        return cls(f"{prefix}{type(exc).__name__}: {exc}", kind, cause=exc)


class MissingCredentialsError(DramaForgeError):
    """No API key is configured for the provider a role needs."""
    kind = ErrorKind.UNAUTHORIZED


class MalformedOutputError(DramaForgeError):
    """Model output could not be parsed even after every recovery step."""
    kind = ErrorKind.MALFORMED_OUTPUT

    def __init__(self, message: str = "", raw: str = ""):
        super().__init__(message)
        self.raw = raw


class TurnInProgressError(DramaForgeError):
    """A second message was sent to a session whose turn is still running."""


class ReadOnlyDocumentError(DramaForgeError):
    """A background document was written after the background lock."""


class ProjectNotFoundError(DramaForgeError):
    """The referenced project does not exist."""


# ============================================================================
# Classification
# ============================================================================

_TIMEOUT_TYPES = (
    asyncio.TimeoutError,
    TimeoutError,
    httpx.TimeoutException,
    openai.APITimeoutError,
    anthropic.APITimeoutError,
)

_NETWORK_TYPES = (
    httpx.TransportError,
    ConnectionError,
    openai.APIConnectionError,
    anthropic.APIConnectionError,
)

_UNAUTHORIZED_PATTERNS = ("401", "403", "unauthorized", "invalid api key", "invalid_api_key",
                          "authentication", "missing credentials", "permission denied")
_RATE_PATTERNS = ("429", "rate limit", "rate_limit", "ratelimit", "too many requests",
                  "quota", "resource exhausted", "overloaded")
_TIMEOUT_PATTERNS = ("timeout", "timed out", "econnaborted")
_NETWORK_PATTERNS = ("network", "connection", "fetch failed", "failed to fetch", "econnrefused",
                     "econnreset", "name resolution")


def _status_code(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "status_code", None)
    if status is None:
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def classify_error(exc: BaseException) -> ErrorKind:
    """Map any exception raised around a provider call onto the taxonomy."""
    if isinstance(exc, DramaForgeError):
        return exc.kind

    status = _status_code(exc)
    if status in (401, 403):
        return ErrorKind.UNAUTHORIZED
    if status == 429:
        return ErrorKind.RATE_LIMITED

    # timeouts subclass the connection errors in both SDKs, so check them first
    if isinstance(exc, _TIMEOUT_TYPES):
        return ErrorKind.TIMEOUT
    if isinstance(exc, _NETWORK_TYPES):
        return ErrorKind.NETWORK_ERROR
    if isinstance(exc, json.JSONDecodeError):
        return ErrorKind.MALFORMED_OUTPUT

    text = str(exc).lower()
    if any(p in text for p in _UNAUTHORIZED_PATTERNS):
        return ErrorKind.UNAUTHORIZED
    if any(p in text for p in _RATE_PATTERNS):
        return ErrorKind.RATE_LIMITED
    if any(p in text for p in _TIMEOUT_PATTERNS):
        return ErrorKind.TIMEOUT
    if any(p in text for p in _NETWORK_PATTERNS):
        return ErrorKind.NETWORK_ERROR
    if "json" in text:
        return ErrorKind.MALFORMED_OUTPUT
    return ErrorKind.GENERIC
