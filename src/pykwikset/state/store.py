"""Deterministic in-memory registry of tracked locks.

This is the only component allowed to change a :class:`TrackedEntity`.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from pykwikset.models.device import DeviceRecord, LockState, LockTargetState, is_low_battery
from pykwikset.state.events import DeviceEvent, DeviceEventType
from pykwikset.state.policy import initial_target, realign_target

_logger = logging.getLogger(__name__)

_ENTITY_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_DNS, "kwikset.com")


def entity_uid(device_id: str) -> str:
    """Stable identifier for the entity mirroring *device_id*."""
    return str(uuid.uuid5(_ENTITY_NAMESPACE, device_id))


@dataclass
class TrackedEntity:
    """Local mirror of one remote lock."""

    device_id: str
    uid: str
    record: DeviceRecord
    lock_state: LockState = LockState.UNKNOWN
    target_state: LockTargetState = LockTargetState.UNSECURED
    battery_percentage: int | None = None
    battery_status: str = ""
    serial_number: str = ""
    stale: bool = False

    @classmethod
    def from_record(cls, record: DeviceRecord) -> TrackedEntity:
        lock_state = record.lock_state
        return cls(
            device_id=record.device_id,
            uid=entity_uid(record.device_id),
            record=record,
            lock_state=lock_state,
            target_state=initial_target(lock_state),
            battery_percentage=record.battery_percentage,
            battery_status=record.battery_status,
            serial_number=record.serial_number,
        )

    @property
    def name(self) -> str:
        return self.record.device_name

    @property
    def model_number(self) -> str:
        return self.record.model_number

    @property
    def low_battery(self) -> bool:
        return is_low_battery(self.battery_percentage)

    def _observable(self) -> tuple[object, ...]:
        return (
            self.name,
            self.model_number,
            self.lock_state,
            self.target_state,
            self.battery_percentage,
            self.battery_status,
            self.serial_number,
        )

    def apply_record(self, record: DeviceRecord) -> bool:
        """Mirror a freshly read record.  Returns ``True`` if anything observable changed."""
        before = self._observable()
        self.record = record
        observed = record.lock_state
        target = realign_target(observed, self.target_state)
        if target != self.target_state:
            _logger.info(
                "%s was operated manually (%s), target now %s",
                self.name or self.device_id,
                observed,
                target,
            )
        self.lock_state = observed
        self.target_state = target
        if record.battery_percentage is not None:
            self.battery_percentage = record.battery_percentage
        if record.battery_status:
            self.battery_status = record.battery_status
        if record.serial_number:
            self.serial_number = record.serial_number
        return self._observable() != before

    def apply_command(self, target: LockTargetState) -> bool:
        """Record a lock/unlock the API accepted.  Returns ``True`` if anything changed."""
        before = self._observable()
        self.target_state = target
        self.lock_state = target.lock_state
        return self._observable() != before


class EntityStore:
    """Tracked entities keyed by :func:`entity_uid`."""

    def __init__(self) -> None:
        self._entities: dict[str, TrackedEntity] = {}

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[TrackedEntity]:
        return iter(list(self._entities.values()))

    def __contains__(self, device_id: object) -> bool:
        return isinstance(device_id, str) and entity_uid(device_id) in self._entities

    def get(self, device_id: str) -> TrackedEntity | None:
        return self._entities.get(entity_uid(device_id))

    def restore(self, records: Iterable[DeviceRecord]) -> None:
        """Seed entities the host registered in a previous run, without events.

        The next :meth:`reconcile` reports them as updated or removed.
        """
        for record in records:
            entity = TrackedEntity.from_record(record)
            self._entities.setdefault(entity.uid, entity)

    def reconcile(self, records: Iterable[DeviceRecord]) -> list[DeviceEvent]:
        """Diff the authoritative device list against the tracked set.

        New ids are discovered, known ids are updated in place, and ids
        absent from *records* are removed.  The result depends only on
        the sets of ids, not on the order of *records*.
        """
        events: list[DeviceEvent] = []
        seen: set[str] = set()

        for record in records:
            uid = entity_uid(record.device_id)
            if uid in seen:
                _logger.debug("Ignoring duplicate device %s", record.device_id)
                continue
            seen.add(uid)

            entity = self._entities.get(uid)
            if entity is None:
                entity = TrackedEntity.from_record(record)
                self._entities[uid] = entity
                events.append(DeviceEvent(DeviceEventType.DISCOVERED, entity.device_id, entity))
            else:
                entity.apply_record(record)
                events.append(DeviceEvent(DeviceEventType.UPDATED, entity.device_id, entity))

        for uid in [uid for uid in self._entities if uid not in seen]:
            entity = self._entities.pop(uid)
            entity.stale = True
            events.append(DeviceEvent(DeviceEventType.REMOVED, entity.device_id, entity))

        return events

    def apply_poll(self, record: DeviceRecord) -> DeviceEvent | None:
        """Merge a single-device read.

        Returns an ``UPDATED`` event only when something observable
        changed.  Records for untracked ids are ignored.
        """
        entity = self.get(record.device_id)
        if entity is None:
            return None
        if not entity.apply_record(record):
            return None
        return DeviceEvent(DeviceEventType.UPDATED, entity.device_id, entity)

    def apply_command(self, device_id: str, target: LockTargetState) -> DeviceEvent | None:
        """Record an accepted lock/unlock and return the resulting ``UPDATED`` event."""
        entity = self.get(device_id)
        if entity is None:
            return None
        entity.apply_command(target)
        return DeviceEvent(DeviceEventType.UPDATED, entity.device_id, entity)
