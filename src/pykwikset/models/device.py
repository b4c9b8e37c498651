"""Lock device model and state enums."""

from __future__ import annotations

import enum
from typing import Any

from pydantic import Field, field_validator

from pykwikset._constants import LOW_BATTERY_LEVEL
from pykwikset.models._base import KwiksetBaseModel, KwiksetEnum, safe_int


class DoorStatus(KwiksetEnum):
    """``doorstatus`` values reported by the API."""

    LOCKED = "Locked"
    UNLOCKED = "Unlocked"
    JAMMED = "Jammed"
    UNKNOWN = "Unknown"


class LockState(enum.StrEnum):
    """Current lock state exposed to the accessory layer."""

    SECURED = "secured"
    UNSECURED = "unsecured"
    JAMMED = "jammed"
    UNKNOWN = "unknown"

    @classmethod
    def from_door_status(cls, status: DoorStatus | str | None) -> LockState:
        """Map a door status onto a lock state.

        The mapping is total: anything that is not ``Locked``,
        ``Unlocked`` or ``Jammed`` maps to :attr:`UNKNOWN`.
        """
        if status is None:
            return cls.UNKNOWN
        return _DOOR_STATUS_TO_LOCK_STATE.get(DoorStatus(status), cls.UNKNOWN)


class LockTargetState(enum.StrEnum):
    """State a lock was last asked (or observed) to reach."""

    SECURED = "secured"
    UNSECURED = "unsecured"

    @property
    def action(self) -> str:
        """Command ``action`` sent to ``/devices/{id}/status``."""
        return "lock" if self is LockTargetState.SECURED else "unlock"

    @property
    def lock_state(self) -> LockState:
        return LockState(self.value)


_DOOR_STATUS_TO_LOCK_STATE: dict[DoorStatus, LockState] = {
    DoorStatus.LOCKED: LockState.SECURED,
    DoorStatus.UNLOCKED: LockState.UNSECURED,
    DoorStatus.JAMMED: LockState.JAMMED,
}


def is_low_battery(battery_percentage: int | None) -> bool:
    """Low battery is exactly ``battery_percentage <= 40``."""
    return battery_percentage is not None and battery_percentage <= LOW_BATTERY_LEVEL


class DeviceRecord(KwiksetBaseModel):
    """A lock as returned by ``/homes/{id}/devices`` and ``/devices_v2/{id}``.

    Remote records are authoritative and never mutated locally.
    """

    device_id: str = Field(validation_alias="deviceid")
    device_name: str = Field(default="", validation_alias="devicename")
    model_number: str = Field(default="", validation_alias="modelnumber")
    door_status: DoorStatus = Field(default=DoorStatus.UNKNOWN, validation_alias="doorstatus")
    battery_percentage: int | None = Field(default=None, validation_alias="batterypercentage")
    battery_status: str = Field(default="", validation_alias="batterystatus")
    serial_number: str = Field(default="", validation_alias="serialnumber")

    @field_validator("device_id", "device_name", "model_number", "battery_status", "serial_number", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> str:
        return str(value)

    @field_validator("door_status", mode="before")
    @classmethod
    def _coerce_door_status(cls, value: Any) -> DoorStatus:
        return DoorStatus(str(value))

    @field_validator("battery_percentage", mode="before")
    @classmethod
    def _coerce_battery(cls, value: Any) -> int | None:
        parsed = safe_int(value)
        if parsed is None:
            return None
        return max(0, min(100, parsed))

    @property
    def lock_state(self) -> LockState:
        return LockState.from_door_status(self.door_status)

    @property
    def low_battery(self) -> bool:
        return is_low_battery(self.battery_percentage)
