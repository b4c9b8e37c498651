"""Events surfaced to the accessory layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pykwikset.state.store import TrackedEntity


class DeviceEventType(StrEnum):
    DISCOVERED = "discovered"
    UPDATED = "updated"
    REMOVED = "removed"


@dataclass(frozen=True)
class DeviceEvent:
    """A register/update/remove notification for one tracked lock."""

    type: DeviceEventType
    device_id: str
    entity: TrackedEntity
    observed_at: datetime = field(default_factory=lambda: datetime.now(UTC))
