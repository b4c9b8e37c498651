"""High-level async client for the Kwikset cloud API."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

import aiohttp

from pykwikset._api.devices import fetch_device, fetch_devices, send_lock_command
from pykwikset._api.homes import fetch_homes
from pykwikset._api.login import CognitoIdentityProvider, IdentityProvider
from pykwikset._transport import ApiTransport
from pykwikset.config import KwiksetConfig
from pykwikset.credentials import CredentialStore
from pykwikset.engine import EventHandler, ReconciliationEngine
from pykwikset.exceptions import KwiksetError
from pykwikset.models.device import DeviceRecord, LockTargetState
from pykwikset.models.home import Home
from pykwikset.session import Session
from pykwikset.session_manager import SessionManager

_logger = logging.getLogger(__name__)


class KwiksetClient:
    """Async client for the Kwikset lock API.

    Usage::

        async with KwiksetClient(config) as client:
            await client.login()
            homes = await client.get_homes()
    """

    def __init__(
        self,
        config: KwiksetConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        provider: IdentityProvider | None = None,
        store: CredentialStore | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._provider = provider
        self._store = store if store is not None else CredentialStore(config.credentials_path)
        self._session = Session()
        self._transport: ApiTransport | None = None
        self._manager: SessionManager | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> KwiksetClient:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        if self._provider is None:
            self._provider = CognitoIdentityProvider()
        self._transport = ApiTransport(
            self._config.base_url,
            self._session,
            self._http_session,
            timeout=self._config.request_timeout,
        )
        self._manager = SessionManager(self._config, self._session, self._provider, self._store)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._manager is not None:
            await self._manager.close()
            self._manager = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._transport = None

    @property
    def session(self) -> Session:
        return self._session

    @property
    def credential_store(self) -> CredentialStore:
        return self._store

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def login(self) -> Session:
        """Validate the configuration and authenticate.

        Starts the background token refresh on success.

        Raises
        ------
        KwiksetConfigError
            If the configuration is invalid.
        KwiksetAuthenticationError
            If the provider rejects the credentials or the challenge.
        """
        self._config.validate()
        return await self._require_manager().login()

    async def refresh(self) -> bool:
        """Refresh the tokens now.  See :meth:`SessionManager.refresh`."""
        return await self._require_manager().refresh()

    def forget_credentials(self) -> None:
        """Delete the cached tokens so the next login is interactive."""
        self._store.clear()
        self._session.clear()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> ApiTransport:
        if self._transport is None:
            raise KwiksetError("Client not initialized. Use 'async with KwiksetClient(...) as client:'")
        return self._transport

    def _require_manager(self) -> SessionManager:
        if self._manager is None:
            raise KwiksetError("Client not initialized. Use 'async with KwiksetClient(...) as client:'")
        return self._manager

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_homes(self) -> list[Home]:
        return await fetch_homes(self._require_transport())

    async def get_devices(self, home_id: str) -> list[DeviceRecord]:
        return await fetch_devices(self._require_transport(), home_id)

    async def get_device(self, device_id: str) -> DeviceRecord:
        return await fetch_device(self._require_transport(), device_id)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def lock(self, device_id: str) -> None:
        """Send a lock command.  Not retried."""
        await send_lock_command(
            self._require_transport(),
            device_id,
            LockTargetState.SECURED,
            source_name=self._config.command_source,
        )

    async def unlock(self, device_id: str) -> None:
        """Send an unlock command.  Not retried."""
        await send_lock_command(
            self._require_transport(),
            device_id,
            LockTargetState.UNSECURED,
            source_name=self._config.command_source,
        )

    def create_engine(
        self,
        on_event: EventHandler | None = None,
        *,
        restored: Iterable[DeviceRecord] = (),
    ) -> ReconciliationEngine:
        """Build a :class:`ReconciliationEngine` for the configured home.

        *restored* seeds locks the caller registered in a previous run so
        the first reconciliation reports them as updated or removed.
        """
        return ReconciliationEngine(
            self._require_transport(),
            home_name=self._config.home_name,
            on_event=on_event,
            poll_interval=self._config.poll_interval,
            discovery_interval=self._config.discovery_interval,
            command_source=self._config.command_source,
            restored=restored,
        )
