"""Keep tracked locks in sync with the Kwikset cloud.

The engine resolves the configured home once, diffs the remote device list
against an :class:`~pykwikset.state.store.EntityStore`, and then runs one
poll task per lock.  Every change is reported through ``on_event``.

Usage::

    engine = ReconciliationEngine(transport, home_name="Cabin", on_event=print)
    await engine.start()
    ...
    await engine.set_lock_state(device_id, LockTargetState.SECURED)
    ...
    await engine.stop()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Iterable

from pykwikset._api.devices import fetch_device, fetch_devices, send_lock_command
from pykwikset._api.homes import fetch_homes, resolve_home
from pykwikset._constants import POLL_INTERVAL
from pykwikset._transport import Transport
from pykwikset.exceptions import KwiksetError
from pykwikset.models.device import DeviceRecord, LockTargetState
from pykwikset.models.home import Home
from pykwikset.state.events import DeviceEvent, DeviceEventType
from pykwikset.state.policy import needs_battery_replacement
from pykwikset.state.store import EntityStore, TrackedEntity

_logger = logging.getLogger(__name__)

EventHandler = Callable[[DeviceEvent], None]


class ReconciliationEngine:
    """Device discovery, polling and lock/unlock for one home."""

    def __init__(
        self,
        transport: Transport,
        *,
        home_name: str,
        on_event: EventHandler | None = None,
        poll_interval: float = POLL_INTERVAL,
        discovery_interval: float = 0,
        command_source: str = "pykwikset",
        restored: Iterable[DeviceRecord] = (),
    ) -> None:
        self._transport = transport
        self._home_name = home_name
        self._on_event = on_event
        self._poll_interval = poll_interval
        self._discovery_interval = discovery_interval
        self._command_source = command_source
        self._store = EntityStore()
        self._store.restore(restored)
        self._home: Home | None = None
        self._poll_tasks: dict[str, asyncio.Task[None]] = {}
        self._discovery_task: asyncio.Task[None] | None = None
        self._started = False

    @property
    def home(self) -> Home | None:
        return self._home

    @property
    def store(self) -> EntityStore:
        return self._store

    @property
    def entities(self) -> list[TrackedEntity]:
        return list(self._store)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def resolve_home(self) -> Home:
        """Resolve the configured home name to a home id.

        Raises
        ------
        KwiksetReconciliationError
            If zero or several homes carry the configured name.
        """
        homes = await fetch_homes(self._transport)
        self._home = resolve_home(homes, self._home_name)
        _logger.info("Using home %r (%s)", self._home.home_name, self._home.home_id)
        return self._home

    async def reconcile(self) -> list[DeviceEvent]:
        """Fetch the device list and apply it to the tracked set.

        Events are emitted before any poll of a newly discovered lock
        starts.
        """
        home = self._home or await self.resolve_home()
        records = await fetch_devices(self._transport, home.home_id)
        for record in records:
            if needs_battery_replacement(record.battery_percentage):
                _logger.warning(
                    "%s battery is at %d%%, replace it soon",
                    record.device_name or record.device_id,
                    record.battery_percentage,
                )

        events = self._store.reconcile(records)
        for event in events:
            label = event.entity.name or event.device_id
            if event.type is DeviceEventType.DISCOVERED:
                _logger.info("Adding new lock: %s", label)
            elif event.type is DeviceEventType.UPDATED:
                _logger.debug("Updating existing lock: %s", label)
            else:
                _logger.info("Removing lock: %s", label)
                await self._cancel_poll(event.device_id)
            self._emit(event)

        if self._started:
            self._ensure_polls()
        return events

    async def start(self) -> None:
        """Resolve the home, reconcile once and start the background tasks."""
        if self._started:
            return
        await self.reconcile()
        self._started = True
        self._ensure_polls()
        if self._discovery_interval > 0:
            self._discovery_task = asyncio.create_task(self._discovery_loop(), name="kwikset-discovery")

    async def _discovery_loop(self) -> None:
        while True:
            await asyncio.sleep(self._discovery_interval)
            try:
                await self.reconcile()
            except KwiksetError as exc:
                _logger.warning("Device discovery failed, keeping current locks: %s", exc)
            except Exception:
                _logger.exception("Unexpected error during device discovery")

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def _ensure_polls(self) -> None:
        for entity in self._store:
            task = self._poll_tasks.get(entity.device_id)
            if task is None or task.done():
                self._poll_tasks[entity.device_id] = asyncio.create_task(
                    self._poll_loop(entity.device_id),
                    name=f"kwikset-poll-{entity.device_id}",
                )

    async def _poll_loop(self, device_id: str) -> None:
        while True:
            try:
                await self.poll(device_id)
            except KwiksetError as exc:
                _logger.warning("Polling %s failed, keeping last state: %s", device_id, exc)
            except Exception:
                _logger.exception("Unexpected error polling %s", device_id)
            await asyncio.sleep(self._poll_interval)

    async def poll(self, device_id: str) -> DeviceEvent | None:
        """Read one lock and merge the result.

        Returns the ``UPDATED`` event when something observable changed.
        """
        record = await fetch_device(self._transport, device_id)
        event = self._store.apply_poll(record)
        if event is not None:
            entity = event.entity
            _logger.debug(
                "%s is %s (target %s, battery %s%%)",
                entity.name or device_id,
                entity.lock_state,
                entity.target_state,
                entity.battery_percentage,
            )
            self._emit(event)
        return event

    async def _cancel_poll(self, device_id: str) -> None:
        task = self._poll_tasks.pop(device_id, None)
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def set_lock_state(self, device_id: str, target: LockTargetState | str) -> TrackedEntity:
        """Lock or unlock a tracked lock.

        The entity is only changed once the API accepted the command.  Its
        state is then taken from the requested action, not from a read.

        Raises
        ------
        KeyError
            If *device_id* is not tracked.
        KwiksetError
            If the command failed.  The entity is left unchanged and the
            command is not retried.
        """
        entity = self._store.get(device_id)
        if entity is None:
            raise KeyError(device_id)
        target = LockTargetState(target)

        _logger.info("Setting %s to %s", entity.name or device_id, target)
        try:
            await send_lock_command(
                self._transport,
                device_id,
                target,
                source_name=self._command_source,
            )
        except KwiksetError as exc:
            _logger.error("Failed to %s %s: %s", target.action, entity.name or device_id, exc)
            raise

        event = self._store.apply_command(device_id, target)
        if event is not None:
            self._emit(event)
        return entity

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _emit(self, event: DeviceEvent) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(event)
        except Exception:
            _logger.exception("Device event handler failed for %s", event.device_id)

    async def stop(self) -> None:
        """Cancel the discovery and poll tasks."""
        self._started = False
        tasks = list(self._poll_tasks.values())
        self._poll_tasks.clear()
        if self._discovery_task is not None:
            tasks.append(self._discovery_task)
            self._discovery_task = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
