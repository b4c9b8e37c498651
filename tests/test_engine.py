from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from pykwikset._api.homes import HOMES_PATH
from pykwikset._transport import ApiResponse
from pykwikset.engine import ReconciliationEngine
from pykwikset.exceptions import KwiksetReconciliationError, KwiksetTransportError
from pykwikset.models.device import DeviceRecord, LockState, LockTargetState
from pykwikset.state.events import DeviceEvent, DeviceEventType
from pykwikset.state.store import entity_uid

HOMES = [{"homeid": "A", "homename": "Loft"}, {"homeid": "B", "homename": "Cabin"}]


def _device(device_id: str, door_status: str = "Locked", battery: int | None = 80, **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "deviceid": device_id,
        "devicename": f"Lock {device_id}",
        "modelnumber": "Halo",
        "doorstatus": door_status,
        "batterypercentage": battery,
        "serialnumber": f"SN-{device_id}",
    }
    payload.update(extra)
    return payload


class _FakeTransport:
    """In-memory stand-in for the Kwikset REST API."""

    def __init__(self, devices: list[dict[str, Any]], homes: list[dict[str, Any]] | None = None) -> None:
        self.homes = HOMES if homes is None else homes
        self.devices = devices
        self.failing: set[str] = set()
        self.calls: list[tuple[str, str, Any]] = []

    def set_door_status(self, device_id: str, door_status: str) -> None:
        for device in self.devices:
            if device["deviceid"] == device_id:
                device["doorstatus"] = door_status

    async def request(self, path: str, method: str = "GET", body: Any | None = None) -> ApiResponse:
        self.calls.append((method, path, body))
        for prefix in self.failing:
            if path.startswith(prefix):
                raise KwiksetTransportError(f"HTTP 500 from {path}", status_code=500, path=path)
        if path == HOMES_PATH:
            return ApiResponse(200, {"data": self.homes})
        if path.startswith("homes/"):
            return ApiResponse(200, {"data": [dict(d) for d in self.devices]})
        if path.startswith("devices_v2/"):
            device_id = path.split("/", 1)[1]
            return ApiResponse(200, {"data": [dict(d) for d in self.devices if d["deviceid"] == device_id]})
        if method == "PATCH":
            return ApiResponse(200, None)
        raise AssertionError(f"unexpected request {method} {path}")

    def paths(self, prefix: str) -> list[str]:
        return [path for _, path, _ in self.calls if path.startswith(prefix)]


def _engine(transport: _FakeTransport, events: list[DeviceEvent], **kwargs: Any) -> ReconciliationEngine:
    kwargs.setdefault("poll_interval", 60)
    return ReconciliationEngine(transport, home_name="Cabin", on_event=events.append, **kwargs)


def _ids(events: list[DeviceEvent], kind: DeviceEventType) -> set[str]:
    return {event.device_id for event in events if event.type is kind}


@pytest.mark.asyncio
async def test_resolves_home_by_exact_name() -> None:
    transport = _FakeTransport([])
    engine = _engine(transport, [])

    home = await engine.resolve_home()

    assert home.home_id == "B"
    await engine.reconcile()
    assert transport.paths("homes/") == ["homes/B/devices"]


@pytest.mark.asyncio
async def test_unresolvable_home_is_fatal() -> None:
    transport = _FakeTransport([], homes=[{"homeid": "A", "homename": "Cabin"}, {"homeid": "B", "homename": "Cabin"}])
    engine = _engine(transport, [])

    with pytest.raises(KwiksetReconciliationError):
        await engine.start()

    assert transport.paths("homes/") == []


@pytest.mark.parametrize(
    ("first", "second"),
    [
        (["a", "b", "c"], ["b", "c", "d"]),
        (["c", "b", "a"], ["d", "c", "b"]),
        (["a"], []),
        ([], ["x", "y"]),
        (["a", "b"], ["b", "a"]),
    ],
)
@pytest.mark.asyncio
async def test_reconciliation_is_a_pure_diff(first: list[str], second: list[str]) -> None:
    transport = _FakeTransport([_device(i) for i in first])
    events: list[DeviceEvent] = []
    engine = _engine(transport, events)

    await engine.reconcile()
    assert _ids(events, DeviceEventType.DISCOVERED) == set(first)
    events.clear()

    transport.devices = [_device(i) for i in second]
    await engine.reconcile()

    assert _ids(events, DeviceEventType.REMOVED) == set(first) - set(second)
    assert _ids(events, DeviceEventType.DISCOVERED) == set(second) - set(first)
    assert _ids(events, DeviceEventType.UPDATED) == set(first) & set(second)
    assert {entity.device_id for entity in engine.entities} == set(second)


@pytest.mark.asyncio
async def test_entity_identity_is_stable_across_reconciliations() -> None:
    transport = _FakeTransport([_device("a")])
    events: list[DeviceEvent] = []
    engine = _engine(transport, events)

    await engine.reconcile()
    first = engine.store.get("a")
    transport.devices = [_device("a", devicename="Renamed")]
    await engine.reconcile()

    entity = engine.store.get("a")
    assert entity is first
    assert entity is not None
    assert entity.uid == entity_uid("a")
    assert entity.name == "Renamed"


@pytest.mark.asyncio
async def test_removed_entity_is_marked_stale() -> None:
    transport = _FakeTransport([_device("a"), _device("b")])
    events: list[DeviceEvent] = []
    engine = _engine(transport, events)
    await engine.start()
    try:
        transport.devices = [_device("b")]
        await engine.reconcile()
    finally:
        await engine.stop()

    removed = [event for event in events if event.type is DeviceEventType.REMOVED]
    assert [event.device_id for event in removed] == ["a"]
    assert removed[0].entity.stale
    assert "a" not in engine.store
    assert "b" in engine.store


@pytest.mark.asyncio
async def test_discovery_completes_before_first_poll() -> None:
    transport = _FakeTransport([_device("a"), _device("b")])
    events: list[DeviceEvent] = []
    engine = _engine(transport, events)

    await engine.start()
    assert _ids(events, DeviceEventType.DISCOVERED) == {"a", "b"}
    try:
        for _ in range(100):
            if len(transport.paths("devices_v2/")) >= 2:
                break
            await asyncio.sleep(0.01)
    finally:
        await engine.stop()

    methods_paths = [path for _, path, _ in transport.calls]
    assert methods_paths.index("homes/B/devices") < methods_paths.index("devices_v2/a")
    assert sorted(transport.paths("devices_v2/")) == ["devices_v2/a", "devices_v2/b"]


@pytest.mark.asyncio
async def test_discovered_entity_mirrors_record() -> None:
    transport = _FakeTransport([_device("a", door_status="Unlocked", battery=40)])
    engine = _engine(transport, [])

    await engine.reconcile()

    entity = engine.store.get("a")
    assert entity is not None
    assert entity.lock_state is LockState.UNSECURED
    assert entity.target_state is LockTargetState.UNSECURED
    assert entity.battery_percentage == 40
    assert entity.low_battery is True
    assert entity.serial_number == "SN-a"


@pytest.mark.asyncio
async def test_manual_unlock_realigns_target_without_relocking() -> None:
    transport = _FakeTransport([_device("a", door_status="Locked")])
    events: list[DeviceEvent] = []
    engine = _engine(transport, events)
    await engine.reconcile()
    entity = engine.store.get("a")
    assert entity is not None
    assert entity.target_state is LockTargetState.SECURED
    events.clear()

    transport.set_door_status("a", "Unlocked")
    event = await engine.poll("a")

    assert event is not None
    assert event.type is DeviceEventType.UPDATED
    assert events == [event]
    assert entity.lock_state is LockState.UNSECURED
    assert entity.target_state is LockTargetState.UNSECURED
    assert transport.paths("devices/") == []


@pytest.mark.asyncio
async def test_unchanged_poll_emits_nothing() -> None:
    transport = _FakeTransport([_device("a")])
    events: list[DeviceEvent] = []
    engine = _engine(transport, events)
    await engine.reconcile()
    events.clear()

    assert await engine.poll("a") is None
    assert events == []


@pytest.mark.asyncio
async def test_jammed_lock_keeps_target() -> None:
    transport = _FakeTransport([_device("a", door_status="Locked")])
    engine = _engine(transport, [])
    await engine.reconcile()

    transport.set_door_status("a", "Jammed")
    await engine.poll("a")

    entity = engine.store.get("a")
    assert entity is not None
    assert entity.lock_state is LockState.JAMMED
    assert entity.target_state is LockTargetState.SECURED


@pytest.mark.asyncio
async def test_set_lock_state_is_idempotent() -> None:
    transport = _FakeTransport([_device("a", door_status="Unlocked", battery=41)])
    events: list[DeviceEvent] = []
    engine = _engine(transport, events, command_source="tests")
    await engine.reconcile()
    events.clear()

    first = await engine.set_lock_state("a", LockTargetState.SECURED)
    once = (first.lock_state, first.target_state, first.low_battery)
    second = await engine.set_lock_state("a", LockTargetState.SECURED)

    assert second is first
    assert (second.lock_state, second.target_state, second.low_battery) == once
    assert once == (LockState.SECURED, LockTargetState.SECURED, False)
    assert [e.type for e in events] == [DeviceEventType.UPDATED, DeviceEventType.UPDATED]

    commands = [(method, path, body) for method, path, body in transport.calls if method == "PATCH"]
    assert [path for _, path, _ in commands] == ["devices/a/status", "devices/a/status"]
    assert commands[0][2]["action"] == "lock"
    assert json.loads(commands[0][2]["source"]) == {"name": "tests", "device": "tests"}
    # State comes from the command, not from a read.
    assert transport.paths("devices_v2/") == []


@pytest.mark.asyncio
async def test_failed_command_leaves_entity_unchanged() -> None:
    transport = _FakeTransport([_device("a", door_status="Locked")])
    events: list[DeviceEvent] = []
    engine = _engine(transport, events)
    await engine.reconcile()
    events.clear()
    transport.failing.add("devices/")

    with pytest.raises(KwiksetTransportError):
        await engine.set_lock_state("a", "unsecured")

    entity = engine.store.get("a")
    assert entity is not None
    assert entity.lock_state is LockState.SECURED
    assert entity.target_state is LockTargetState.SECURED
    assert events == []
    assert len(transport.paths("devices/")) == 1


@pytest.mark.asyncio
async def test_command_for_unknown_device() -> None:
    engine = _engine(_FakeTransport([]), [])
    with pytest.raises(KeyError):
        await engine.set_lock_state("missing", LockTargetState.SECURED)


@pytest.mark.asyncio
async def test_poll_errors_keep_last_state() -> None:
    transport = _FakeTransport([_device("a", door_status="Locked", battery=90)])
    events: list[DeviceEvent] = []
    engine = _engine(transport, events, poll_interval=0.01)
    transport.failing.add("devices_v2/")
    await engine.start()
    try:
        for _ in range(100):
            if len(transport.paths("devices_v2/")) >= 3:
                break
            await asyncio.sleep(0.01)
    finally:
        await engine.stop()

    entity = engine.store.get("a")
    assert entity is not None
    assert len(transport.paths("devices_v2/")) >= 3
    assert entity.lock_state is LockState.SECURED
    assert entity.battery_percentage == 90
    assert [e.type for e in events] == [DeviceEventType.DISCOVERED]


@pytest.mark.asyncio
async def test_restored_entities_are_updated_or_removed() -> None:
    restored = [
        DeviceRecord.model_validate(_device("a")),
        DeviceRecord.model_validate(_device("gone")),
    ]
    transport = _FakeTransport([_device("a"), _device("b")])
    events: list[DeviceEvent] = []
    engine = _engine(transport, events, restored=restored)

    await engine.reconcile()

    assert _ids(events, DeviceEventType.UPDATED) == {"a"}
    assert _ids(events, DeviceEventType.DISCOVERED) == {"b"}
    assert _ids(events, DeviceEventType.REMOVED) == {"gone"}


@pytest.mark.asyncio
async def test_failing_event_handler_does_not_stop_reconciliation() -> None:
    transport = _FakeTransport([_device("a"), _device("b")])
    seen: list[str] = []

    def handler(event: DeviceEvent) -> None:
        seen.append(event.device_id)
        raise RuntimeError("accessory layer exploded")

    engine = ReconciliationEngine(transport, home_name="Cabin", on_event=handler)

    await engine.reconcile()

    assert sorted(seen) == ["a", "b"]
    assert len(engine.entities) == 2


@pytest.mark.asyncio
async def test_periodic_discovery_picks_up_new_locks() -> None:
    transport = _FakeTransport([_device("a")])
    events: list[DeviceEvent] = []
    engine = _engine(transport, events, discovery_interval=0.01)
    await engine.start()
    try:
        transport.devices = [_device("a"), _device("b")]
        for _ in range(100):
            if "b" in engine.store:
                break
            await asyncio.sleep(0.01)
    finally:
        await engine.stop()

    assert _ids(events, DeviceEventType.DISCOVERED) == {"a", "b"}


class _BrokenPollTransport(_FakeTransport):
    async def request(self, path: str, method: str = "GET", body: Any | None = None) -> ApiResponse:
        if path.startswith("devices_v2/"):
            self.calls.append((method, path, body))
            raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
        return await super().request(path, method, body)


@pytest.mark.asyncio
async def test_unexpected_poll_error_does_not_end_polling() -> None:
    transport = _BrokenPollTransport([_device("a", door_status="Locked")])
    engine = _engine(transport, [], poll_interval=0.01)
    await engine.start()
    try:
        for _ in range(100):
            if len(transport.paths("devices_v2/")) >= 3:
                break
            await asyncio.sleep(0.01)
        task = engine._poll_tasks["a"]
        assert not task.done()
    finally:
        await engine.stop()

    assert len(transport.paths("devices_v2/")) >= 3
    entity = engine.store.get("a")
    assert entity is not None
    assert entity.lock_state is LockState.SECURED


@pytest.mark.asyncio
async def test_malformed_device_does_not_hide_the_others() -> None:
    transport = _FakeTransport([_device("a"), {"devicename": "no id"}, _device("b")])
    events: list[DeviceEvent] = []
    engine = _engine(transport, events)

    await engine.reconcile()

    assert _ids(events, DeviceEventType.DISCOVERED) == {"a", "b"}
