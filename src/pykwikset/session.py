"""Session state shared by every component that issues requests."""

from __future__ import annotations

import enum
import logging
import time

from pykwikset._redact import mask_token
from pykwikset.models.token import CredentialRecord

_logger = logging.getLogger(__name__)


class AuthPhase(enum.StrEnum):
    """Authentication state machine phases."""

    UNAUTHENTICATED = "unauthenticated"
    SILENT_LOGIN_ATTEMPT = "silent_login_attempt"
    CHALLENGE_REQUIRED = "challenge_required"
    AWAITING_VERIFICATION_CODE = "awaiting_verification_code"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"


class Session:
    """Mutable session state owned by the client.

    There is a single writer (the session manager) and many readers (every
    request).  :attr:`credentials` is a frozen :class:`CredentialRecord`
    that is swapped wholesale, so a reader captures either the previous
    or the new token, never a mix.
    """

    def __init__(self) -> None:
        self._credentials: CredentialRecord | None = None
        self._phase = AuthPhase.UNAUTHENTICATED
        self._updated_at: float | None = None

    @property
    def credentials(self) -> CredentialRecord | None:
        return self._credentials

    @property
    def phase(self) -> AuthPhase:
        return self._phase

    @property
    def bearer_token(self) -> str | None:
        """Token sent as ``Authorization: Bearer``.

        The REST API's authorizer validates Cognito ID tokens.
        """
        credentials = self._credentials
        return credentials.id_token if credentials is not None else None

    @property
    def is_authenticated(self) -> bool:
        return self._credentials is not None and self._phase in (AuthPhase.AUTHENTICATED, AuthPhase.REFRESHING)

    @property
    def age(self) -> float | None:
        """Seconds since the tokens were last replaced."""
        if self._updated_at is None:
            return None
        return time.monotonic() - self._updated_at

    def set_phase(self, phase: AuthPhase) -> None:
        if phase != self._phase:
            _logger.debug("Auth phase %s -> %s", self._phase, phase)
        self._phase = phase

    def replace_credentials(self, credentials: CredentialRecord) -> None:
        self._credentials = credentials
        self._updated_at = time.monotonic()
        _logger.debug("Session tokens replaced (id token %s)", mask_token(credentials.id_token))

    def clear(self) -> None:
        self._credentials = None
        self._updated_at = None
        self.set_phase(AuthPhase.UNAUTHENTICATED)
