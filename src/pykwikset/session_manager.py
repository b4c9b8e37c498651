"""Authentication lifecycle: cached login, interactive login, refresh.

Phases (see :class:`~pykwikset.session.AuthPhase`)::

    UNAUTHENTICATED -> SILENT_LOGIN_ATTEMPT -> AUTHENTICATED
                                            -> CHALLENGE_REQUIRED
                                               -> AWAITING_VERIFICATION_CODE
                                               -> AUTHENTICATED

Once authenticated, a background task refreshes the tokens every
``config.refresh_interval`` seconds for the lifetime of the client.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable

from pykwikset._api.login import IdentityProvider, SignInResult
from pykwikset._constants import CUSTOM_CHALLENGE, GENERATE_CODE_ANSWER, verify_code_answer
from pykwikset.challenge import ChallengeServer
from pykwikset.config import KwiksetConfig
from pykwikset.credentials import CredentialStore
from pykwikset.exceptions import (
    KwiksetAuthenticationError,
    KwiksetChallengeRejectedError,
    KwiksetError,
)
from pykwikset.models.token import CredentialRecord
from pykwikset.session import AuthPhase, Session

_logger = logging.getLogger(__name__)


class SessionManager:
    """Owns the authentication state machine for one :class:`Session`."""

    def __init__(
        self,
        config: KwiksetConfig,
        session: Session,
        provider: IdentityProvider,
        store: CredentialStore,
        *,
        challenge_server_factory: Callable[..., ChallengeServer] = ChallengeServer,
    ) -> None:
        self._config = config
        self._session = session
        self._provider = provider
        self._store = store
        self._challenge_server_factory = challenge_server_factory
        self._challenge_server: ChallengeServer | None = None
        self._refresh_task: asyncio.Task[None] | None = None
        self._refresh_failures = 0

    @property
    def session(self) -> Session:
        return self._session

    @property
    def refresh_failures(self) -> int:
        """Consecutive failed refreshes since the last success."""
        return self._refresh_failures

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def login(self) -> Session:
        """Authenticate and start the background refresh.

        Tries the cached tokens first and falls back to a full login.

        Raises
        ------
        KwiksetAuthenticationError
            If the password is rejected, an unsupported challenge is
            returned, or the verification loop gives up.
        """
        _logger.debug("Running Kwikset login")
        cached = self._store.load()
        if cached is not None and await self._silent_login(cached):
            _logger.info("Logged in with cached tokens")
        else:
            if cached is not None:
                _logger.warning("Failed to login with cached tokens, reauthenticating...")
            await self._full_login()
            _logger.info("Logged in!")

        self._start_refresh_loop()
        return self._session

    async def _silent_login(self, cached: CredentialRecord) -> bool:
        self._session.set_phase(AuthPhase.SILENT_LOGIN_ATTEMPT)
        try:
            credentials = await self._provider.refresh(cached)
        except KwiksetError as exc:
            _logger.debug("Cached session rejected: %s", exc)
            self._session.set_phase(AuthPhase.UNAUTHENTICATED)
            return False
        self._session.replace_credentials(credentials)
        self._session.set_phase(AuthPhase.AUTHENTICATED)
        return True

    async def _full_login(self) -> None:
        self._session.set_phase(AuthPhase.UNAUTHENTICATED)
        try:
            result = await self._provider.sign_in(self._config.email, self._config.password)
        except KwiksetError as exc:
            _logger.error("Failed to log in: %s - Make sure your username and password are correct.", exc)
            raise KwiksetAuthenticationError(f"Sign in failed: {exc}") from exc

        if result.credentials is not None:
            _logger.info("No auth challenge, proceeding...")
            credentials = result.credentials
        elif result.challenge_name == CUSTOM_CHALLENGE:
            self._session.set_phase(AuthPhase.CHALLENGE_REQUIRED)
            challenge = await self._provider.respond_to_custom_challenge(result, GENERATE_CODE_ANSWER)
            if challenge.credentials is not None:
                credentials = challenge.credentials
            else:
                _logger.info("Generated verification code, waiting for input")
                credentials = await self._await_verification(challenge)
                _logger.info("Code verified!")
        else:
            _logger.error("Unknown auth challenge name %s", result.challenge_name)
            raise KwiksetAuthenticationError(f"Unsupported auth challenge {result.challenge_name}")

        self._session.replace_credentials(credentials)
        self._session.set_phase(AuthPhase.AUTHENTICATED)
        self._persist(credentials)

    def _persist(self, credentials: CredentialRecord) -> None:
        try:
            self._store.save(credentials)
        except OSError as exc:
            _logger.warning("Could not save credentials to %s: %s", self._store.path, exc)

    async def _await_verification(self, challenge: SignInResult) -> CredentialRecord:
        """Collect codes from the challenge server until one is accepted."""
        self._session.set_phase(AuthPhase.AWAITING_VERIFICATION_CODE)
        server = self._challenge_server_factory(grace_period=self._config.challenge_grace_period)
        self._challenge_server = server

        timeout = self._config.challenge_timeout
        max_attempts = self._config.max_challenge_attempts
        deadline = time.monotonic() + timeout if timeout > 0 else None
        attempts = 0
        try:
            await server.start(self._config.mfa_port)
            while True:
                remaining = deadline - time.monotonic() if deadline is not None else None
                try:
                    code = await asyncio.wait_for(server.await_code(), remaining)
                except TimeoutError as exc:
                    raise KwiksetAuthenticationError(
                        f"No valid verification code received within {timeout:g}s"
                    ) from exc

                attempts += 1
                _logger.info("Input received. Verifying code (attempt %d)...", attempts)
                try:
                    outcome = await self._verify_code(challenge, code)
                except KwiksetChallengeRejectedError as exc:
                    _logger.error("Failed to verify code: %s - Try again.", exc)
                else:
                    if outcome.credentials is not None:
                        server.report_outcome(True)
                        server.close_after()
                        return outcome.credentials
                    # A wrong code yields a fresh challenge session for the next try.
                    challenge = outcome
                    _logger.error("Failed to verify code - Try again.")

                server.report_outcome(False)
                if max_attempts > 0 and attempts >= max_attempts:
                    raise KwiksetAuthenticationError(f"Verification failed after {attempts} attempts")
        except BaseException:
            self._challenge_server = None
            await server.stop()
            raise

    async def _verify_code(self, challenge: SignInResult, code: str) -> SignInResult:
        try:
            return await self._provider.respond_to_custom_challenge(challenge, verify_code_answer(code))
        except KwiksetChallengeRejectedError:
            raise
        except KwiksetError as exc:
            raise KwiksetChallengeRejectedError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def _start_refresh_loop(self) -> None:
        if self._refresh_task is not None and not self._refresh_task.done():
            return
        self._refresh_task = asyncio.create_task(self._refresh_loop(), name="kwikset-token-refresh")

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.refresh_interval)
            if await self.refresh():
                continue
            threshold = self._config.reauth_after_refresh_failures
            if threshold > 0 and self._refresh_failures >= threshold:
                _logger.warning(
                    "Token refresh failed %d times in a row, reauthenticating...",
                    self._refresh_failures,
                )
                previous_phase = self._session.phase
                try:
                    await self._full_login()
                except Exception:
                    _logger.exception("Reauthentication after refresh failures failed")
                    self._session.set_phase(previous_phase)
                else:
                    self._refresh_failures = 0

    async def refresh(self) -> bool:
        """Refresh the tokens once.

        On failure the previous token stays in place and ``False`` is
        returned; a stale token is preferred over no token.
        """
        current = self._session.credentials
        if current is None:
            _logger.error("Cannot refresh: no active session")
            return False

        previous_phase = self._session.phase
        self._session.set_phase(AuthPhase.REFRESHING)
        try:
            credentials = await self._provider.refresh(current)
        except KwiksetError as exc:
            self._refresh_failures += 1
            _logger.error("An error occurred refreshing session: %s", exc)
            self._session.set_phase(previous_phase)
            return False

        self._refresh_failures = 0
        self._session.replace_credentials(credentials)
        self._session.set_phase(AuthPhase.AUTHENTICATED)
        _logger.debug("Session refreshed")
        return True

    async def close(self) -> None:
        """Cancel the refresh task and stop a running challenge server."""
        task = self._refresh_task
        self._refresh_task = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        server = self._challenge_server
        self._challenge_server = None
        if server is not None:
            await server.stop()
