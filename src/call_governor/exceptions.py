# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Exception classes for the call governor library.

This module defines the exception hierarchy used throughout the library.
All exceptions inherit from GovernorError, making it easy to catch every
governor-related failure with a single except clause.

Only ThrottledError and the terminal TransportError/MalformedResponseError
(after cache and fallback recovery are exhausted) ever reach callers of
CallGovernor.request(). StorageWriteError is raised by store
implementations and always absorbed by the result cache.
"""

from typing import Any


class GovernorError(Exception):
    """Base exception for all call governor errors.

    Example:
        try:
            content = await service.request_content(request)
        except GovernorError as e:
            logger.error(f"Content generation failed: {e}")
    """

    pass


class ConfigurationError(GovernorError):
    """Raised when governor wiring or configuration is invalid.

    Common causes include:
    - A provider chain with no providers
    - A content service missing a governor for a requested category
    - Environment overrides that cannot be parsed
    """

    pass


class ThrottledError(GovernorError):
    """Raised when the call ledger denies a new call and nothing can be served.

    This is distinct from a transport failure so that user interfaces can
    say "please wait" rather than "something went wrong".

    Attributes:
        category: The content category whose ledger denied the call.
        retry_after: Seconds until the ledger would permit another call.
            May be None if it cannot be determined.

    Example:
        try:
            await governor.request(request)
        except ThrottledError as e:
            if e.retry_after is not None:
                await asyncio.sleep(e.retry_after)
    """

    def __init__(
        self,
        message: str,
        category: str | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message)
        self.category = category
        self.retry_after = retry_after


class TransportError(GovernorError):
    """Raised when a network call to a content provider fails.

    Covers connection failures, per-attempt timeouts and non-2xx responses.

    Attributes:
        endpoint: The provider name or URL that failed. May be None.
        status_code: HTTP status code when the provider answered. None for
            connection failures and timeouts.
    """

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code


class ProviderChainExhaustedError(TransportError):
    """Raised when every provider in a chain failed on every retry round.

    Attributes:
        attempts: Total number of provider attempts made.
        last_error: The last exception observed, if any.
    """

    def __init__(
        self,
        message: str = "All content providers failed",
        attempts: int = 0,
        last_error: Exception | None = None,
    ):
        status_code = getattr(last_error, "status_code", None)
        endpoint = getattr(last_error, "endpoint", None)
        super().__init__(message, endpoint=endpoint, status_code=status_code)
        self.attempts = attempts
        self.last_error = last_error


class MalformedResponseError(GovernorError):
    """Raised when provider output cannot be parsed into the expected envelope.

    Attributes:
        raw: The offending payload (text or decoded JSON), kept for debugging.
            Never shown to end users.
    """

    def __init__(self, message: str, raw: Any = None):
        super().__init__(message)
        self.raw = raw


class ContentNormalizationError(MalformedResponseError):
    """Raised when a lesson payload has no sections at all.

    This is the single hard failure of the content normalizer; every other
    irregularity is repaired with defaults.
    """

    pass


class StorageWriteError(GovernorError):
    """Raised by a persistent store when a write fails.

    Typical causes are an exhausted storage quota, an unreachable Redis server
    or an unwritable file. The result cache catches and logs this error; the
    in-process tier stays authoritative for the rest of the session.

    Attributes:
        key: The store key that could not be written.
    """

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message)
        self.key = key


RATE_LIMITED_MESSAGE = "You're learning fast! Please wait a moment and try again."
GENERATION_FAILED_MESSAGE = (
    "We couldn't create this content right now. Please try again later."
)


def user_message(error: BaseException) -> str:
    """Map a propagated error to one of two human-readable categories.

    Raw provider payloads and stack traces are never exposed.
    """
    if isinstance(error, ThrottledError):
        return RATE_LIMITED_MESSAGE
    return GENERATION_FAILED_MESSAGE


__all__ = [
    "GENERATION_FAILED_MESSAGE",
    "RATE_LIMITED_MESSAGE",
    "ConfigurationError",
    "ContentNormalizationError",
    "GovernorError",
    "MalformedResponseError",
    "ProviderChainExhaustedError",
    "StorageWriteError",
    "ThrottledError",
    "TransportError",
    "user_message",
]
