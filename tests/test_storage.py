from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from fleetsim.exceptions import StorageUnavailableError
from fleetsim.models import Coordinate, HistoryEntry, Trigger, Vehicle
from fleetsim.storage import InMemoryStorage, Storage, TickCommit


def _dt() -> datetime:
    return datetime(2026, 1, 1, tzinfo=UTC)


def _trigger(trigger_id: str, *, active: bool = True, vehicle: str = "v1") -> Trigger:
    return Trigger.model_validate(
        {
            "id": trigger_id,
            "vehicle": vehicle,
            "type": "speed_based",
            "conditions": {"thresholds": {"high": 60}},
            "isActive": active,
        }
    )


def _entry(at: datetime, trigger: Trigger | None = None) -> HistoryEntry:
    context = {"trigger_id": trigger.id, "trigger_type": trigger.type} if trigger is not None else {}
    return HistoryEntry(vehicle_id="v1", timestamp=at, location=Coordinate.of(0, 0), context=context)


def test_satisfies_protocol() -> None:
    assert isinstance(InMemoryStorage(), Storage)


@pytest.mark.asyncio
async def test_save_triggers_inserts_only_new_ids() -> None:
    storage = InMemoryStorage()

    assert await storage.save_triggers([_trigger("t1"), _trigger("t2")]) == 2
    assert await storage.save_triggers([_trigger("t1"), _trigger("t3")]) == 1
    assert len(await storage.list_triggers("v1")) == 3


@pytest.mark.asyncio
async def test_active_triggers_filtered_by_vehicle_and_flag() -> None:
    storage = InMemoryStorage(triggers=[_trigger("t1"), _trigger("t2", active=False), _trigger("t3", vehicle="v2")])

    active = await storage.list_active_triggers("v1")

    assert [trigger.id for trigger in active] == ["t1"]


@pytest.mark.asyncio
async def test_commit_applies_all_parts() -> None:
    vehicle = Vehicle(id="v1")
    storage = InMemoryStorage(vehicles=[vehicle], triggers=[_trigger("t1")])
    fired = _trigger("t1").fired_at(_dt())
    updated = vehicle.model_copy(update={"current_speed": 42.0})

    commit = TickCommit(vehicle=updated, entries=(_entry(_dt()), _entry(_dt(), fired)), fired_triggers=(fired,))
    await storage.commit(commit)

    assert len(storage.history("v1")) == 2
    assert storage.vehicle("v1") == updated
    stored = storage.trigger("t1")
    assert stored is not None
    assert stored.last_triggered == _dt()
    assert storage.commits == 1


@pytest.mark.asyncio
async def test_commit_keeps_concurrent_deactivation() -> None:
    storage = InMemoryStorage(triggers=[_trigger("t1")])
    fired = _trigger("t1").fired_at(_dt())
    storage.put_trigger(_trigger("t1", active=False))

    await storage.commit(TickCommit(vehicle=Vehicle(id="v1"), entries=(_entry(_dt(), fired),), fired_triggers=(fired,)))

    stored = storage.trigger("t1")
    assert stored is not None
    assert not stored.is_active
    assert stored.last_triggered == _dt()


@pytest.mark.asyncio
async def test_count_history_since() -> None:
    storage = InMemoryStorage()
    entries = tuple(_entry(_dt() + timedelta(minutes=i)) for i in range(3))
    await storage.commit(TickCommit(vehicle=Vehicle(id="v1"), entries=entries))

    assert await storage.count_history() == 3
    assert await storage.count_history(since=_dt() + timedelta(minutes=1)) == 2


@pytest.mark.asyncio
async def test_unavailable_storage_raises() -> None:
    storage = InMemoryStorage()
    storage.available = False

    with pytest.raises(StorageUnavailableError) as exc_info:
        await storage.list_vehicles()
    assert exc_info.value.operation == "list_vehicles"

    with pytest.raises(StorageUnavailableError):
        await storage.ping()
