"""Cognito identity provider adapter.

Kwikset accounts live in a Cognito user pool configured for the
``CUSTOM_AUTH`` flow:

1. ``InitiateAuth`` with an SRP_A value, answered with a
   ``PASSWORD_VERIFIER`` response (password check).
2. A ``CUSTOM_CHALLENGE`` whose answers are fixed-format strings: one asks
   for a code to be texted to the user, the next submits that code.
3. ``InitiateAuth`` with ``REFRESH_TOKEN_AUTH`` to mint new tokens.

boto3 is synchronous, so every call runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Any, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pycognito.aws_srp import AWSSRP

from pykwikset._constants import (
    COGNITO_AWS_REGION,
    COGNITO_USER_POOL_CLIENT,
    COGNITO_USER_POOL_ID,
    CUSTOM_CHALLENGE,
    PASSWORD_VERIFIER,
)
from pykwikset._redact import redact_for_log
from pykwikset.exceptions import (
    KwiksetAuthenticationError,
    KwiksetChallengeRejectedError,
    KwiksetTransportError,
)
from pykwikset.models.token import CredentialRecord

_logger = logging.getLogger(__name__)

# Cognito error codes that mean "the provider said no", as opposed to an
# outage or a network failure.
_REJECTION_CODES: frozenset[str] = frozenset(
    {
        "NotAuthorizedException",
        "UserNotFoundException",
        "UserNotConfirmedException",
        "PasswordResetRequiredException",
        "CodeMismatchException",
        "ExpiredCodeException",
        "InvalidParameterException",
    }
)


@dataclasses.dataclass(frozen=True)
class SignInResult:
    """Outcome of one step of the sign-in conversation.

    Exactly one of ``credentials`` (authenticated) or ``challenge_name``
    (further answer required) is set.
    """

    username: str
    challenge_name: str | None = None
    session: str | None = None
    challenge_parameters: dict[str, str] = dataclasses.field(default_factory=dict)
    credentials: CredentialRecord | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.credentials is not None


class IdentityProvider(Protocol):
    """Structural interface used by the session manager.

    Tests pass fakes; production uses :class:`CognitoIdentityProvider`.
    """

    async def sign_in(self, username: str, password: str) -> SignInResult:
        ...

    async def respond_to_custom_challenge(self, challenge: SignInResult, answer: str) -> SignInResult:
        ...

    async def refresh(self, credentials: CredentialRecord) -> CredentialRecord:
        ...


def parse_auth_response(username: str, response: dict[str, Any]) -> SignInResult:
    """Turn an ``InitiateAuth``/``RespondToAuthChallenge`` reply into a :class:`SignInResult`."""
    result = response.get("AuthenticationResult")
    if isinstance(result, dict):
        try:
            credentials = CredentialRecord(
                id_token=result["IdToken"],
                access_token=result["AccessToken"],
                refresh_token=result["RefreshToken"],
            )
        except KeyError as exc:
            raise KwiksetAuthenticationError(f"Authentication result missing {exc.args[0]}") from exc
        return SignInResult(username=username, credentials=credentials)

    challenge_name = response.get("ChallengeName")
    if not challenge_name:
        raise KwiksetAuthenticationError("Identity provider returned neither tokens nor a challenge")
    parameters = response.get("ChallengeParameters") or {}
    return SignInResult(
        username=str(parameters.get("USERNAME", username)),
        challenge_name=str(challenge_name),
        session=response.get("Session"),
        challenge_parameters=dict(parameters),
    )


def _map_client_error(exc: ClientError | BotoCoreError, action: str) -> Exception:
    if isinstance(exc, ClientError):
        code = exc.response.get("Error", {}).get("Code", "")
        message = exc.response.get("Error", {}).get("Message", "")
        if code in _REJECTION_CODES:
            return KwiksetAuthenticationError(f"{action} rejected: {code} {message}".strip())
        return KwiksetTransportError(f"{action} failed: {code} {message}".strip())
    return KwiksetTransportError(f"{action} failed: {exc}")


class CognitoIdentityProvider:
    """:class:`IdentityProvider` backed by boto3's ``cognito-idp`` client."""

    def __init__(
        self,
        *,
        region: str = COGNITO_AWS_REGION,
        pool_id: str = COGNITO_USER_POOL_ID,
        client_id: str = COGNITO_USER_POOL_CLIENT,
        client: Any | None = None,
    ) -> None:
        self._pool_id = pool_id
        self._client_id = client_id
        self._client = client if client is not None else boto3.client("cognito-idp", region_name=region)

    async def sign_in(self, username: str, password: str) -> SignInResult:
        """Verify the password; returns tokens or the next challenge.

        Raises
        ------
        KwiksetAuthenticationError
            If the credentials are rejected.
        """
        return await asyncio.to_thread(self._sign_in_sync, username, password)

    async def respond_to_custom_challenge(self, challenge: SignInResult, answer: str) -> SignInResult:
        """Answer a ``CUSTOM_CHALLENGE``.

        Raises
        ------
        KwiksetChallengeRejectedError
            If the provider rejects the answer outright.
        """
        return await asyncio.to_thread(self._respond_sync, challenge, answer)

    async def refresh(self, credentials: CredentialRecord) -> CredentialRecord:
        """Mint new ID/access tokens from the record's refresh token."""
        return await asyncio.to_thread(self._refresh_sync, credentials)

    # ------------------------------------------------------------------
    # Blocking implementations (run via asyncio.to_thread)
    # ------------------------------------------------------------------

    def _sign_in_sync(self, username: str, password: str) -> SignInResult:
        srp = AWSSRP(
            username=username,
            password=password,
            pool_id=self._pool_id,
            client_id=self._client_id,
            client=self._client,
        )
        auth_params = srp.get_auth_params()
        auth_params["CHALLENGE_NAME"] = "SRP_A"
        try:
            response = self._client.initiate_auth(
                AuthFlow="CUSTOM_AUTH",
                AuthParameters=auth_params,
                ClientId=self._client_id,
            )
            if response.get("ChallengeName") == PASSWORD_VERIFIER:
                challenge_responses = srp.process_challenge(response["ChallengeParameters"], auth_params)
                kwargs: dict[str, Any] = {
                    "ClientId": self._client_id,
                    "ChallengeName": PASSWORD_VERIFIER,
                    "ChallengeResponses": challenge_responses,
                }
                if response.get("Session"):
                    kwargs["Session"] = response["Session"]
                response = self._client.respond_to_auth_challenge(**kwargs)
        except (ClientError, BotoCoreError) as exc:
            raise _map_client_error(exc, "Sign in") from exc

        result = parse_auth_response(username, response)
        _logger.debug(
            "Sign in step complete: challenge=%s authenticated=%s",
            result.challenge_name,
            result.is_authenticated,
        )
        return result

    def _respond_sync(self, challenge: SignInResult, answer: str) -> SignInResult:
        kwargs: dict[str, Any] = {
            "ClientId": self._client_id,
            "ChallengeName": CUSTOM_CHALLENGE,
            "ChallengeResponses": {"USERNAME": challenge.username, "ANSWER": answer},
        }
        if challenge.session:
            kwargs["Session"] = challenge.session
        _logger.debug("Custom challenge answer %s", redact_for_log(kwargs))
        try:
            response = self._client.respond_to_auth_challenge(**kwargs)
        except (ClientError, BotoCoreError) as exc:
            mapped = _map_client_error(exc, "Challenge answer")
            if isinstance(mapped, KwiksetAuthenticationError):
                raise KwiksetChallengeRejectedError(str(mapped)) from exc
            raise mapped from exc
        return parse_auth_response(challenge.username, response)

    def _refresh_sync(self, credentials: CredentialRecord) -> CredentialRecord:
        try:
            response = self._client.initiate_auth(
                AuthFlow="REFRESH_TOKEN_AUTH",
                AuthParameters={"REFRESH_TOKEN": credentials.refresh_token},
                ClientId=self._client_id,
            )
        except (ClientError, BotoCoreError) as exc:
            raise _map_client_error(exc, "Token refresh") from exc

        result = response.get("AuthenticationResult")
        if not isinstance(result, dict) or not result.get("IdToken") or not result.get("AccessToken"):
            raise KwiksetAuthenticationError("Token refresh returned no tokens")
        return credentials.with_refreshed(
            id_token=result["IdToken"],
            access_token=result["AccessToken"],
            refresh_token=result.get("RefreshToken"),
        )
