"""Simulation engine: scheduling, working set and per-pass orchestration."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import random
from collections.abc import Callable, Mapping
from datetime import UTC, datetime, timedelta
from types import MappingProxyType
from typing import Any

from fleetsim._ticker import Ticker
from fleetsim.config import SimulationConfig
from fleetsim.exceptions import EngineNotInitializedError, StorageError, StorageUnavailableError
from fleetsim.models.telemetry import TelemetrySample
from fleetsim.models.vehicle import Route, Vehicle
from fleetsim.recorder import HistoryRecorder
from fleetsim.simulation.movement import MovementSimulator
from fleetsim.simulation.scenarios import ScenarioPosition
from fleetsim.storage.base import Storage
from fleetsim.triggers.evaluator import TriggerEvaluator
from fleetsim.triggers.templates import build_default_triggers

_logger = logging.getLogger(__name__)

#: Window used by the health check to look for freshly written history.
HEALTH_HISTORY_WINDOW = timedelta(minutes=10)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclasses.dataclass(frozen=True, slots=True)
class WorkingSet:
    """Immutable snapshot of the simulated vehicles and known routes.

    Replaced wholesale on refresh; a running pass keeps the set it started with.
    """

    vehicles: tuple[Vehicle, ...] = ()
    routes: Mapping[str, Route] = dataclasses.field(default_factory=lambda: MappingProxyType({}))
    loaded_at: datetime | None = None

    @classmethod
    def build(cls, vehicles: list[Vehicle], routes: list[Route], loaded_at: datetime) -> WorkingSet:
        seen: set[str] = set()
        active: list[Vehicle] = []
        for vehicle in vehicles:
            if not vehicle.is_simulated or vehicle.id in seen:
                continue
            seen.add(vehicle.id)
            active.append(vehicle)
        return cls(
            vehicles=tuple(active),
            routes=MappingProxyType({route.id: route for route in routes}),
            loaded_at=loaded_at,
        )

    @property
    def vehicle_ids(self) -> list[str]:
        return [vehicle.id for vehicle in self.vehicles]


@dataclasses.dataclass(frozen=True, slots=True)
class PassReport:
    """Outcome of one simulation pass."""

    started_at: datetime
    finished_at: datetime
    vehicles: int = 0
    succeeded: int = 0
    failed: int = 0
    entries_written: int = 0
    triggers_fired: int = 0
    refreshed: bool = False
    skipped_reason: str | None = None

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None


@dataclasses.dataclass(frozen=True, slots=True)
class HealthReport:
    checked_at: datetime
    storage_available: bool
    simulated_vehicles: int = 0
    recent_history_entries: int = 0

    @property
    def healthy(self) -> bool:
        return self.storage_available and (self.simulated_vehicles == 0 or self.recent_history_entries > 0)


@dataclasses.dataclass(frozen=True, slots=True)
class EngineStatus:
    """Point-in-time view of the engine.

    ``scenario`` and ``scenario_snapshot`` name the canned snapshot the next
    pass hands to vehicles without a followable route.
    """

    initialized: bool
    running: bool
    vehicles: int
    routes: int
    passes: int
    skipped_ticks: int
    last_refresh: datetime | None
    last_pass: PassReport | None
    last_health_check: HealthReport | None
    tick_interval: float
    refresh_interval: float
    scenario: str
    scenario_snapshot: int


@dataclasses.dataclass(frozen=True, slots=True)
class _VehicleOutcome:
    entries: int = 0
    fired: int = 0


class SimulationEngine:
    """Drives periodic telemetry simulation for a fleet.

    Usage::

        engine = SimulationEngine(storage, SimulationConfig())
        async with engine:
            await engine.start()
            ...

    Entering the context initializes the engine; leaving it stops the ticker.

    Parameters
    ----------
    storage : Storage
        Storage collaborator for vehicles, routes, triggers and history.
    config : SimulationConfig or None
        Engine configuration; defaults apply when omitted.
    clock : callable or None
        Returns the current UTC time. Injected by tests.
    rng : random.Random or None
        Random source for the simulator. Seeded from ``config.seed`` by default.
    """

    def __init__(
        self,
        storage: Storage,
        config: SimulationConfig | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._storage = storage
        self._config = config or SimulationConfig()
        self._clock = clock or _utcnow
        rng = rng or random.Random(self._config.seed)
        self._simulator = MovementSimulator(self._config, rng=rng)
        self._evaluator = TriggerEvaluator(
            default_cooldown=self._config.default_trigger_cooldown,
            tz=self._config.tzinfo,
        )
        self._recorder = HistoryRecorder(self._config, rng=rng)

        self._pass_lock = asyncio.Lock()
        self._ticker: Ticker | None = None
        self._working_set: WorkingSet | None = None
        # Runtime state carried across passes and merged on refresh.
        self._priors: dict[str, TelemetrySample] = {}
        self._snapshots: dict[str, Vehicle] = {}

        self._passes = 0
        self._skipped_ticks = 0
        self._last_pass: PassReport | None = None
        self._last_health: HealthReport | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SimulationEngine:
        await self.initialize()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def initialized(self) -> bool:
        return self._working_set is not None

    @property
    def running(self) -> bool:
        return self._ticker is not None and self._ticker.running

    @property
    def working_set(self) -> WorkingSet:
        if self._working_set is None:
            raise EngineNotInitializedError("engine has not been initialized")
        return self._working_set

    @property
    def simulator(self) -> MovementSimulator:
        return self._simulator

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Load the working set. Safe to call again; it then acts as :meth:`refresh`.

        Raises
        ------
        StorageUnavailableError
            When storage cannot be reached.
        """
        await self.refresh()
        _logger.info(
            "Simulation engine initialized: %d vehicles, %d routes",
            len(self.working_set.vehicles),
            len(self.working_set.routes),
        )

    async def refresh(self) -> WorkingSet:
        """Reload vehicles and routes between passes."""
        async with self._pass_lock:
            return await self._load_working_set()

    async def start(self) -> None:
        """Start ticking. Initializes first when needed; a second call is a no-op."""
        if self.running:
            _logger.debug("Simulation engine already running")
            return
        if not self.initialized:
            await self.initialize()
        self._ticker = Ticker(self._config.tick_interval, self._on_tick, name="fleetsim-engine")
        self._ticker.start()
        _logger.info("Simulation engine started, ticking every %.1fs", self._config.tick_interval)

    async def stop(self) -> None:
        """Stop ticking after the in-flight pass, if any, completes."""
        ticker = self._ticker
        if ticker is None:
            return
        self._ticker = None
        await ticker.stop()
        self._skipped_ticks += ticker.missed
        _logger.info(
            "Simulation engine stopped after %d passes (%d ticks skipped)",
            self._passes,
            self._skipped_ticks,
        )

    async def trigger_once(self) -> PassReport:
        """Run one pass now, waiting for any in-flight pass to finish first."""
        if not self.initialized:
            raise EngineNotInitializedError("call initialize() before trigger_once()")
        async with self._pass_lock:
            return await self._run_pass()

    def status(self) -> EngineStatus:
        working_set = self._working_set
        position = self._simulator.cursor.peek()
        return EngineStatus(
            initialized=working_set is not None,
            running=self.running,
            vehicles=len(working_set.vehicles) if working_set else 0,
            routes=len(working_set.routes) if working_set else 0,
            passes=self._passes,
            skipped_ticks=self._skipped_ticks + (self._ticker.missed if self._ticker else 0),
            last_refresh=working_set.loaded_at if working_set else None,
            last_pass=self._last_pass,
            last_health_check=self._last_health,
            tick_interval=self._config.tick_interval,
            refresh_interval=self._config.refresh_interval,
            scenario=position.scenario.name,
            scenario_snapshot=position.snapshot_index,
        )

    async def handle_new_vehicle(self, vehicle_id: str) -> int:
        """Provision default triggers for a newly added vehicle and refresh.

        Returns the number of triggers created. Unknown vehicles are logged
        and ignored.
        """
        vehicle = await self._storage.get_vehicle(vehicle_id)
        if vehicle is None:
            _logger.warning("New vehicle %s not found in storage", vehicle_id)
            return 0

        created = 0
        if self._config.provision_default_triggers:
            route = await self._storage.get_route(vehicle.assigned_route) if vehicle.assigned_route else None
            triggers = build_default_triggers(vehicle, route if route is not None and route.is_followable else None)
            created = await self._storage.save_triggers(triggers)
            _logger.info("Provisioned %d default triggers for vehicle %s", created, vehicle.label)

        await self.refresh()
        return created

    async def handle_new_route(self, route_id: str) -> int:
        """Refresh after a route was added, adding stop triggers to its vehicles.

        Returns the number of triggers created.
        """
        route = await self._storage.get_route(route_id)
        if route is None:
            _logger.warning("New route %s not found in storage", route_id)
        elif not route.is_followable:
            _logger.warning("Route %s has %d stop(s); assigned vehicles replay scenarios", route_id, len(route.stops))

        working_set = await self.refresh()
        if route is None or not route.is_followable or not self._config.provision_default_triggers:
            return 0

        created = 0
        for vehicle in working_set.vehicles:
            if vehicle.assigned_route == route_id:
                created += await self._storage.save_triggers(build_default_triggers(vehicle, route))
        if created:
            _logger.info("Provisioned %d stop triggers for route %s", created, route_id)
        return created

    async def health_check(self) -> HealthReport:
        """Check storage reachability and that history is being written. Never raises."""
        now = self._clock()
        vehicles = len(self._working_set.vehicles) if self._working_set else 0
        try:
            await self._storage.ping()
            recent = await self._storage.count_history(since=now - HEALTH_HISTORY_WINDOW)
        except StorageError:
            _logger.warning("Health check: storage unavailable", exc_info=True)
            report = HealthReport(checked_at=now, storage_available=False, simulated_vehicles=vehicles)
        else:
            report = HealthReport(
                checked_at=now,
                storage_available=True,
                simulated_vehicles=vehicles,
                recent_history_entries=recent,
            )
            if not report.healthy:
                _logger.warning("Health check: no history written in the last %s", HEALTH_HISTORY_WINDOW)
            else:
                _logger.debug("Health check ok: %d vehicles, %d recent entries", vehicles, recent)
        self._last_health = report
        return report

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _on_tick(self) -> None:
        if self._pass_lock.locked():
            self._skipped_ticks += 1
            _logger.warning("Previous simulation pass still running, skipping tick")
            return
        async with self._pass_lock:
            await self._run_pass()
        if self._health_check_due():
            await self.health_check()

    def _health_check_due(self) -> bool:
        interval = self._config.health_check_interval
        if interval <= 0:
            return False
        if self._last_health is None:
            return True
        return (self._clock() - self._last_health.checked_at).total_seconds() >= interval

    def _refresh_due(self, now: datetime) -> bool:
        loaded_at = self._working_set.loaded_at if self._working_set else None
        if loaded_at is None:
            return True
        return (now - loaded_at).total_seconds() >= self._config.refresh_interval

    async def _load_working_set(self) -> WorkingSet:
        vehicles = await self._storage.list_vehicles()
        routes = await self._storage.list_routes()
        working_set = WorkingSet.build(vehicles, routes, self._clock())

        # Storage copies replace cached snapshots; priors survive for vehicles still present.
        keep = set(working_set.vehicle_ids)
        self._snapshots = {vehicle.id: vehicle for vehicle in working_set.vehicles}
        self._priors = {vehicle_id: prior for vehicle_id, prior in self._priors.items() if vehicle_id in keep}
        self._recorder.retain(keep)

        previous = self._working_set
        self._working_set = working_set
        if previous is not None:
            _logger.info(
                "Working set refreshed: %d -> %d vehicles, %d routes",
                len(previous.vehicles),
                len(working_set.vehicles),
                len(working_set.routes),
            )
        return working_set

    async def _run_pass(self) -> PassReport:
        started = self._clock()
        try:
            await self._storage.ping()
        except StorageUnavailableError:
            _logger.warning("Storage unavailable, skipping simulation pass", exc_info=True)
            skipped = PassReport(started_at=started, finished_at=self._clock(), skipped_reason="storage_unavailable")
            return self._finish_pass(skipped)

        refreshed = False
        if self._refresh_due(started):
            try:
                await self._load_working_set()
                refreshed = True
            except StorageError:
                _logger.warning("Working set refresh failed, keeping previous set", exc_info=True)

        working_set = self.working_set
        position = self._simulator.next_scenario_position()
        semaphore = asyncio.Semaphore(self._config.max_concurrency)

        async def _guarded(vehicle: Vehicle) -> _VehicleOutcome | None:
            async with semaphore:
                try:
                    return await self._process_vehicle(vehicle, working_set, position, started)
                except Exception:
                    _logger.error("Simulation failed for vehicle %s", vehicle.id, exc_info=True)
                    return None

        outcomes = await asyncio.gather(*(_guarded(vehicle) for vehicle in working_set.vehicles))
        done = [outcome for outcome in outcomes if outcome is not None]
        report = PassReport(
            started_at=started,
            finished_at=self._clock(),
            vehicles=len(outcomes),
            succeeded=len(done),
            failed=len(outcomes) - len(done),
            entries_written=sum(outcome.entries for outcome in done),
            triggers_fired=sum(outcome.fired for outcome in done),
            refreshed=refreshed,
        )
        _logger.info(
            "Simulation pass: %d/%d vehicles ok, %d entries, %d triggers fired",
            report.succeeded,
            report.vehicles,
            report.entries_written,
            report.triggers_fired,
        )
        return self._finish_pass(report)

    def _finish_pass(self, report: PassReport) -> PassReport:
        self._passes += 1
        self._last_pass = report
        return report

    async def _resolve_route(self, vehicle: Vehicle, working_set: WorkingSet) -> Route | None:
        route_id = vehicle.assigned_route
        if not route_id:
            return None
        route = working_set.routes.get(route_id)
        if route is None:
            route = await self._storage.get_route(route_id)
        if route is None or not route.is_followable:
            _logger.debug("Vehicle %s has no followable route %s, replaying scenario", vehicle.id, route_id)
            return None
        return route

    async def _process_vehicle(
        self,
        vehicle: Vehicle,
        working_set: WorkingSet,
        position: ScenarioPosition,
        now: datetime,
    ) -> _VehicleOutcome:
        vehicle = self._snapshots.get(vehicle.id, vehicle)
        route = await self._resolve_route(vehicle, working_set)
        sample = self._simulator.sample(vehicle, route, position, now)

        triggers = await self._storage.list_active_triggers(vehicle.id)
        result = self._evaluator.evaluate(vehicle, triggers, sample, now=now, prior=self._priors.get(vehicle.id))
        commit = self._recorder.build_commit(vehicle, sample, result.firings, now=now)
        await self._storage.commit(commit)

        self._priors[vehicle.id] = sample
        self._snapshots[vehicle.id] = commit.vehicle
        _logger.debug(
            "Vehicle %s at %.5f,%.5f (%s), %d trigger(s) fired",
            vehicle.id,
            sample.location.latitude,
            sample.location.longitude,
            sample.mode.value,
            len(commit.fired_triggers),
        )
        return _VehicleOutcome(entries=len(commit.entries), fired=len(commit.fired_triggers))
