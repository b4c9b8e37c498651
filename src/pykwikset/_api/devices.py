"""Lock endpoints.

Endpoints:
  - GET /homes/{homeId}/devices
  - GET /devices_v2/{deviceId}
  - PATCH /devices/{deviceId}/status
"""

from __future__ import annotations

import json
import logging

from pykwikset._api._common import parse_items
from pykwikset._transport import Transport
from pykwikset.exceptions import KwiksetApiError
from pykwikset.models.device import DeviceRecord, LockTargetState

_logger = logging.getLogger(__name__)


async def fetch_devices(transport: Transport, home_id: str) -> list[DeviceRecord]:
    """Fetch every lock in a home."""
    path = f"homes/{home_id}/devices"
    response = await transport.request(path)
    return parse_items(path, response, DeviceRecord)


async def fetch_device(transport: Transport, device_id: str) -> DeviceRecord:
    """Fetch the current record of a single lock.

    The endpoint answers with a single-element list.
    """
    path = f"devices_v2/{device_id}"
    response = await transport.request(path)
    records = parse_items(path, response, DeviceRecord)
    if not records:
        raise KwiksetApiError(f"{path} returned no device", path=path)
    return records[0]


def build_lock_command(target: LockTargetState, source_name: str) -> dict[str, str]:
    """Body of a lock/unlock command.  ``source`` is itself a JSON string."""
    return {
        "action": target.action,
        "source": json.dumps({"name": source_name, "device": source_name}),
    }


async def send_lock_command(
    transport: Transport,
    device_id: str,
    target: LockTargetState,
    *,
    source_name: str,
) -> None:
    """Ask a lock to lock or unlock.

    Returns once the API accepted the command; the transport raises on
    any failure.  Never retried.
    """
    path = f"devices/{device_id}/status"
    await transport.request(path, method="PATCH", body=build_lock_command(target, source_name))
    _logger.debug("Sent %s to %s", target.action, device_id)
