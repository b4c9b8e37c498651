"""HTTP transport that attaches the session's bearer token."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import aiohttp

from pykwikset._constants import USER_AGENT
from pykwikset._redact import redact_for_log
from pykwikset.exceptions import KwiksetAuthenticationError, KwiksetTransportError
from pykwikset.session import Session

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApiResponse:
    """Decoded API response."""

    status: int
    data: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles/mocks while
    keeping the production implementation (`ApiTransport`) concrete.
    """

    async def request(self, path: str, method: str = "GET", body: Any | None = None) -> ApiResponse:
        ...


class ApiTransport:
    """Stateless request helper for the Kwikset REST API.

    The bearer token is read from the :class:`Session` once per call and
    never refreshed or validated here.  Failures are not retried.
    """

    def __init__(
        self,
        base_url: str,
        session: Session,
        http_session: aiohttp.ClientSession,
        *,
        timeout: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._session = session
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def request(self, path: str, method: str = "GET", body: Any | None = None) -> ApiResponse:
        """Send a request and return the decoded JSON body.

        Raises
        ------
        KwiksetAuthenticationError
            If the session holds no token yet.
        KwiksetTransportError
            On network failure, timeout, a non-2xx status (including
            ``401``) or a body that is not JSON.
        """
        token = self._session.bearer_token
        if not token:
            raise KwiksetAuthenticationError("Not logged in; call login() first")

        headers: dict[str, str] = {
            "user-agent": USER_AGENT,
            "accept-encoding": "gzip",
            "authorization": f"Bearer {token}",
        }
        data: str | None = None
        if body is not None:
            headers["content-type"] = "application/json"
            data = json.dumps(body)

        url = f"{self._base_url}/{path.lstrip('/')}"
        _logger.debug("%s %s body=%s", method, url, redact_for_log(body))

        try:
            async with self._http.request(method, url, data=data, headers=headers, timeout=self._timeout) as resp:
                raw = await resp.read()
                status = resp.status
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise KwiksetTransportError(f"Request to {path} failed: {exc!r}", path=path) from exc

        if not 200 <= status < 300:
            raise KwiksetTransportError(
                f"HTTP {status} from {path}: {raw[:200].decode('utf-8', 'replace')}",
                status_code=status,
                path=path,
            )

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise KwiksetTransportError(
                f"Undecodable body from {path} ({len(raw)} bytes)",
                status_code=status,
                path=path,
            ) from exc

        if not text.strip():
            return ApiResponse(status=status, data=None)
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError as exc:
            raise KwiksetTransportError(
                f"Invalid JSON from {path}: {text[:200]}",
                status_code=status,
                path=path,
            ) from exc
        return ApiResponse(status=status, data=decoded)
