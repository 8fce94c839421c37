"""Movement simulator.

Produces one :class:`~fleetsim.models.telemetry.TelemetrySample` per vehicle
per tick, either by following the vehicle's assigned route under time
compression or by replaying the canned scenario library.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from datetime import datetime

from fleetsim.config import SimulationConfig
from fleetsim.exceptions import RouteDataError
from fleetsim.geo import bearing_degrees, distance_meters, interpolate, route_length_meters
from fleetsim.models.geo import Coordinate
from fleetsim.models.telemetry import (
    DeviceHealth,
    RouteContext,
    RouteDeviation,
    RouteProgress,
    SampleMode,
    TelemetrySample,
    VehicleHealth,
)
from fleetsim.models.vehicle import Route, Vehicle
from fleetsim.simulation.scenarios import DEFAULT_SCENARIOS, Scenario, ScenarioCursor, ScenarioPosition

_logger = logging.getLogger(__name__)

_SPEED_VARIATION = 0.10
_HEADING_VARIATION_DEG = 10.0
_HEALTH_VARIATION = 5.0


def compressed_progress(elapsed_in_cycle: float, cycle_seconds: float, compression_factor: float) -> float:
    """Fraction of the route covered after *elapsed_in_cycle* seconds.

    ``raw = clamp(elapsed / cycle, 0, 1)`` and the result is
    ``min(raw * compression_factor, 1)``.
    """
    raw = min(1.0, max(0.0, elapsed_in_cycle / cycle_seconds))
    return min(raw * compression_factor, 1.0)


def locate_on_route(stop_count: int, progress: float) -> tuple[int, float]:
    """Map route *progress* onto ``(segment start index, fraction within segment)``.

    Progress ``1.0`` maps to the end of the last segment.
    """
    if stop_count < 2:
        raise ValueError("a route needs at least two stops")
    segments = stop_count - 1
    position = min(1.0, max(0.0, progress)) * segments
    index = min(int(math.floor(position)), segments - 1)
    return index, position - index


def _clamp_coordinate(latitude: float, longitude: float) -> Coordinate:
    return Coordinate(latitude=min(90.0, max(-90.0, latitude)), longitude=min(180.0, max(-180.0, longitude)))


@dataclass(frozen=True, slots=True)
class RoutePosition:
    """Computed position of a route-following vehicle."""

    location: Coordinate
    ideal_location: Coordinate
    deviation: RouteDeviation
    progress: RouteProgress
    heading: float


def compute_route_position(
    route: Route,
    *,
    elapsed_in_cycle: float,
    config: SimulationConfig,
    rng: random.Random,
) -> RoutePosition:
    """Interpolate the vehicle's position along *route* for this point of the cycle.

    Raises
    ------
    RouteDataError
        When the route has fewer than two stops.
    """
    if not route.is_followable:
        raise RouteDataError(f"route {route.id} has {len(route.stops)} stop(s)", route_id=route.id)
    points = route.points
    progress = compressed_progress(elapsed_in_cycle, config.cycle_seconds, config.compression_factor)
    index, fraction = locate_on_route(len(points), progress)
    start, end = points[index], points[index + 1]

    ideal = interpolate(start, end, fraction)
    if config.jitter_degrees > 0:
        location = _clamp_coordinate(
            ideal.latitude + (rng.random() - 0.5) * config.jitter_degrees,
            ideal.longitude + (rng.random() - 0.5) * config.jitter_degrees,
        )
    else:
        location = ideal

    deviation_m = distance_meters(location, ideal)
    total_km = route_length_meters(points) / 1000.0
    return RoutePosition(
        location=location,
        ideal_location=ideal,
        deviation=RouteDeviation(distance=deviation_m, duration=math.floor(deviation_m * 2)),
        progress=RouteProgress(
            percentage=round(progress * 100, 1),
            distance_traveled=round(total_km * progress, 3),
            time_elapsed=round(progress * config.assumed_traversal_seconds / 60.0, 1),
            current_stop_index=index,
            total_stops=len(points),
            compressed_progress=progress,
        ),
        heading=bearing_degrees(start, end),
    )


class MovementSimulator:
    """Builds telemetry samples for vehicles.

    The scenario cursor is shared: :meth:`next_scenario_position` is called once
    per pass and the returned position is used for every vehicle in it.
    """

    def __init__(
        self,
        config: SimulationConfig,
        *,
        rng: random.Random | None = None,
        scenarios: tuple[Scenario, ...] = DEFAULT_SCENARIOS,
    ) -> None:
        self._config = config
        self._rng = rng or random.Random(config.seed)
        self._cursor = ScenarioCursor(scenarios)

    @property
    def cursor(self) -> ScenarioCursor:
        return self._cursor

    def next_scenario_position(self) -> ScenarioPosition:
        position = self._cursor.advance()
        _logger.debug(
            "Scenario %s snapshot %d/%d",
            position.scenario.name,
            position.snapshot_index + 1,
            len(position.scenario.snapshots),
        )
        return position

    def elapsed_in_cycle(self, now: datetime) -> float:
        return now.timestamp() % self._config.cycle_seconds

    def sample(
        self,
        vehicle: Vehicle,
        route: Route | None,
        position: ScenarioPosition,
        now: datetime,
    ) -> TelemetrySample:
        """Telemetry for *vehicle* at *now*.

        Follows *route* when it has at least two stops, otherwise replays the
        scenario snapshot at *position*.
        """
        snapshot = position.snapshot
        rng = self._rng

        current_speed = max(0.0, snapshot.current_speed * (1 + rng.uniform(-_SPEED_VARIATION, _SPEED_VARIATION)))
        average_speed = max(0.0, snapshot.average_speed)
        max_speed = max(snapshot.max_speed, current_speed)
        heading = (snapshot.heading + (rng.random() - 0.5) * _HEADING_VARIATION_DEG) % 360.0
        device_health = DeviceHealth(
            accuracy=snapshot.device_health.accuracy,
            battery_level=_clamp_percent(
                snapshot.device_health.battery_level + (rng.random() - 0.5) * _HEALTH_VARIATION
            ),
            signal_strength=_clamp_percent(
                snapshot.device_health.signal_strength + (rng.random() - 0.5) * _HEALTH_VARIATION
            ),
        )

        if route is not None and route.is_followable:
            placed = compute_route_position(
                route,
                elapsed_in_cycle=self.elapsed_in_cycle(now),
                config=self._config,
                rng=rng,
            )
            mode = SampleMode.ROUTE
            location = placed.location
            heading = placed.heading
            route_context = RouteContext(route_id=route.id, deviation=placed.deviation, progress=placed.progress)
        else:
            spread = self._config.scenario_spread_degrees
            mode = SampleMode.SCENARIO
            location = _clamp_coordinate(
                snapshot.location.latitude + (rng.random() - 0.5) * spread,
                snapshot.location.longitude + (rng.random() - 0.5) * spread,
            )
            route_context = RouteContext(route_id=vehicle.assigned_route)

        return TelemetrySample(
            vehicle_id=vehicle.id,
            recorded_at=now,
            mode=mode,
            location=location,
            current_speed=current_speed,
            average_speed=average_speed,
            max_speed=max_speed,
            heading=heading,
            weather=snapshot.weather,
            traffic=snapshot.traffic,
            performance=snapshot.performance,
            route=route_context,
            device_health=device_health,
            vehicle_health=VehicleHealth(maintenance="maintenance" in snapshot.events),
            last_updates=dict(vehicle.context_data.last_updates),
            events=snapshot.events,
            source=snapshot.source,
        )


def _clamp_percent(value: float) -> float:
    return min(100.0, max(0.0, value))
