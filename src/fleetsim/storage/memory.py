"""Deterministic in-memory storage.

Reference implementation of :class:`~fleetsim.storage.base.Storage` used by
the demo script and the tests. All records are frozen pydantic models, so
reads hand out the stored objects without copying.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from datetime import datetime

from fleetsim.exceptions import StorageUnavailableError
from fleetsim.models.history import HistoryEntry
from fleetsim.models.trigger import Trigger
from fleetsim.models.vehicle import Route, Vehicle
from fleetsim.storage.base import TickCommit


class InMemoryStorage:
    """In-memory store for vehicles, routes, triggers and history.

    :meth:`commit` applies a whole :class:`TickCommit` under one lock, so a
    reader never sees the vehicle snapshot without its history entries.
    Setting :attr:`available` to ``False`` makes every call raise
    :class:`StorageUnavailableError`.
    """

    def __init__(
        self,
        *,
        vehicles: Iterable[Vehicle] = (),
        routes: Iterable[Route] = (),
        triggers: Iterable[Trigger] = (),
    ) -> None:
        self._lock = asyncio.Lock()
        self._vehicles: dict[str, Vehicle] = {vehicle.id: vehicle for vehicle in vehicles}
        self._routes: dict[str, Route] = {route.id: route for route in routes}
        self._triggers: dict[str, Trigger] = {trigger.id: trigger for trigger in triggers}
        self._history: list[HistoryEntry] = []
        self.available = True
        self.commits = 0

    def _check(self, operation: str) -> None:
        if not self.available:
            raise StorageUnavailableError("storage is unavailable", operation=operation)

    # ------------------------------------------------------------------
    # Seeding (synchronous, for setup code)
    # ------------------------------------------------------------------

    def put_vehicle(self, vehicle: Vehicle) -> None:
        self._vehicles[vehicle.id] = vehicle

    def put_route(self, route: Route) -> None:
        self._routes[route.id] = route

    def put_trigger(self, trigger: Trigger) -> None:
        self._triggers[trigger.id] = trigger

    def remove_vehicle(self, vehicle_id: str) -> None:
        self._vehicles.pop(vehicle_id, None)

    # ------------------------------------------------------------------
    # Storage protocol
    # ------------------------------------------------------------------

    async def ping(self) -> None:
        self._check("ping")

    async def list_vehicles(self) -> list[Vehicle]:
        self._check("list_vehicles")
        return list(self._vehicles.values())

    async def list_routes(self) -> list[Route]:
        self._check("list_routes")
        return list(self._routes.values())

    async def get_vehicle(self, vehicle_id: str) -> Vehicle | None:
        self._check("get_vehicle")
        return self._vehicles.get(vehicle_id)

    async def get_route(self, route_id: str) -> Route | None:
        self._check("get_route")
        return self._routes.get(route_id)

    async def list_triggers(self, vehicle_id: str) -> list[Trigger]:
        self._check("list_triggers")
        return [trigger for trigger in self._triggers.values() if trigger.vehicle == vehicle_id]

    async def list_active_triggers(self, vehicle_id: str) -> list[Trigger]:
        return [trigger for trigger in await self.list_triggers(vehicle_id) if trigger.is_active]

    async def save_triggers(self, triggers: Sequence[Trigger]) -> int:
        """Insert triggers whose id is not stored yet. Returns the number inserted."""
        self._check("save_triggers")
        async with self._lock:
            inserted = 0
            for trigger in triggers:
                if trigger.id in self._triggers:
                    continue
                self._triggers[trigger.id] = trigger
                inserted += 1
            return inserted

    async def commit(self, commit: TickCommit) -> None:
        self._check("commit")
        async with self._lock:
            self._history.extend(commit.entries)
            for trigger in commit.fired_triggers:
                stored = self._triggers.get(trigger.id)
                # Only the firing timestamp moves; activation changes made meanwhile are kept.
                base = stored if stored is not None else trigger
                self._triggers[trigger.id] = base.model_copy(update={"last_triggered": trigger.last_triggered})
            self._vehicles[commit.vehicle.id] = commit.vehicle
            self.commits += 1

    async def count_history(self, since: datetime | None = None) -> int:
        self._check("count_history")
        if since is None:
            return len(self._history)
        return sum(1 for entry in self._history if entry.timestamp >= since)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def history(self, vehicle_id: str | None = None) -> list[HistoryEntry]:
        if vehicle_id is None:
            return list(self._history)
        return [entry for entry in self._history if entry.vehicle_id == vehicle_id]

    def trigger(self, trigger_id: str) -> Trigger | None:
        return self._triggers.get(trigger_id)

    def vehicle(self, vehicle_id: str) -> Vehicle | None:
        return self._vehicles.get(vehicle_id)
