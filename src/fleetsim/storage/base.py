"""Storage collaborator contract.

The engine never talks to a database directly. Everything it reads and
writes goes through an object implementing :class:`Storage`. Writes for one
vehicle and one tick are bundled into a :class:`TickCommit` that the storage
must apply as a single unit of work.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, model_validator

from fleetsim.models.history import HistoryEntry
from fleetsim.models.trigger import Trigger
from fleetsim.models.vehicle import Route, Vehicle


class TickCommit(BaseModel):
    """All writes produced for one vehicle in one tick.

    Parameters
    ----------
    vehicle : Vehicle
        Updated vehicle snapshot, replacing the stored one.
    entries : tuple of HistoryEntry
        History entries to append, in timestamp order.
    fired_triggers : tuple of Trigger
        Triggers whose ``last_triggered`` advanced.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    vehicle: Vehicle
    entries: tuple[HistoryEntry, ...] = Field(default_factory=tuple)
    fired_triggers: tuple[Trigger, ...] = Field(default_factory=tuple)

    @model_validator(mode="after")
    def _check_consistency(self) -> TickCommit:
        vehicle_id = self.vehicle.id
        for entry in self.entries:
            if entry.vehicle_id != vehicle_id:
                raise ValueError(f"history entry for {entry.vehicle_id} in commit for {vehicle_id}")
        entry_ids = {entry.trigger_id for entry in self.entries}
        for trigger in self.fired_triggers:
            if trigger.vehicle != vehicle_id:
                raise ValueError(f"trigger {trigger.id} does not belong to {vehicle_id}")
            if trigger.id not in entry_ids:
                raise ValueError(f"trigger {trigger.id} fired without a history entry")
        return self


@runtime_checkable
class Storage(Protocol):
    """Async storage collaborator.

    Implementations raise :class:`~fleetsim.exceptions.StorageUnavailableError`
    when the backing store cannot be reached.
    """

    async def ping(self) -> None: ...

    async def list_vehicles(self) -> list[Vehicle]: ...

    async def list_routes(self) -> list[Route]: ...

    async def get_vehicle(self, vehicle_id: str) -> Vehicle | None: ...

    async def get_route(self, route_id: str) -> Route | None: ...

    async def list_triggers(self, vehicle_id: str) -> list[Trigger]: ...

    async def list_active_triggers(self, vehicle_id: str) -> list[Trigger]: ...

    async def save_triggers(self, triggers: Sequence[Trigger]) -> int: ...

    async def commit(self, commit: TickCommit) -> None: ...

    async def count_history(self, since: datetime | None = None) -> int: ...
