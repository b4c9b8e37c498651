"""Typed models for Kwikset API payloads."""

from pykwikset.models.device import (
    DeviceRecord,
    DoorStatus,
    LockState,
    LockTargetState,
    is_low_battery,
)
from pykwikset.models.home import Home
from pykwikset.models.token import CredentialRecord

__all__ = [
    "CredentialRecord",
    "DeviceRecord",
    "DoorStatus",
    "Home",
    "LockState",
    "LockTargetState",
    "is_low_battery",
]
