"""Custom exception hierarchy for pykwikset."""

from __future__ import annotations


class KwiksetError(Exception):
    """Base exception for all pykwikset errors."""


class KwiksetConfigError(KwiksetError):
    """Invalid or missing configuration."""


class KwiksetTransportError(KwiksetError):
    """HTTP-level failure (network, timeout, non-2xx, invalid JSON).

    Raised for every request failure, including ``401`` responses; the
    transport never retries.  Poll and refresh loops log it and keep the
    previous state.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        path: str = "",
    ) -> None:
        self.status_code = status_code
        self.path = path
        super().__init__(message)


class KwiksetApiError(KwiksetError):
    """API answered, but the payload could not be used."""

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class KwiksetAuthenticationError(KwiksetError):
    """Login failed: bad credentials, unsupported challenge or no session."""


class KwiksetChallengeRejectedError(KwiksetAuthenticationError):
    """The identity provider rejected a submitted verification code.

    Handled inside the verification loop; the user may resubmit.
    """


class KwiksetReconciliationError(KwiksetError):
    """The configured home could not be resolved to exactly one home."""
