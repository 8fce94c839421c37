from __future__ import annotations

import random
from datetime import UTC, datetime, timedelta

import pytest

from fleetsim.config import SimulationConfig
from fleetsim.exceptions import RouteDataError
from fleetsim.geo import distance_meters, interpolate
from fleetsim.models import Route, SampleMode, Vehicle
from fleetsim.simulation import (
    DEFAULT_SCENARIOS,
    MovementSimulator,
    ScenarioCursor,
    compressed_progress,
    compute_route_position,
    locate_on_route,
)

# Start of a 120 s cycle: the epoch timestamp is a multiple of 120.
CYCLE_START = datetime(2026, 1, 1, 6, 0, tzinfo=UTC)


def _route(stops: int = 4) -> Route:
    return Route.model_validate(
        {
            "id": "r1",
            "name": "Test line",
            "stops": [
                {"sequence": i, "coordinates": {"latitude": -1.29 - 0.01 * i, "longitude": 36.82 + 0.01 * i}}
                for i in range(stops)
            ],
        }
    )


def _vehicle(route: str | None = "r1") -> Vehicle:
    return Vehicle(id="v1", status="in_use", assigned_route=route)


class TestCompression:
    def test_reference_example(self) -> None:
        # 120 s cycle at 10x compression is done after 60 s.
        assert compressed_progress(60, 120, 10) == 1.0

    def test_linear_before_saturation(self) -> None:
        assert compressed_progress(6, 120, 10) == pytest.approx(0.5)
        assert compressed_progress(0, 120, 10) == 0.0

    def test_clamped(self) -> None:
        assert compressed_progress(-5, 120, 10) == 0.0
        assert compressed_progress(500, 120, 0.5) == 0.5

    def test_locate_on_route(self) -> None:
        assert locate_on_route(4, 0.0) == (0, 0.0)
        assert locate_on_route(4, 0.5) == (1, pytest.approx(0.5))
        assert locate_on_route(4, 1.0) == (2, 1.0)

    def test_locate_needs_two_stops(self) -> None:
        with pytest.raises(ValueError):
            locate_on_route(1, 0.5)


class TestRoutePosition:
    def test_full_traversal_ends_at_final_stop(self) -> None:
        route = _route()
        config = SimulationConfig(jitter_degrees=0.0)

        placed = compute_route_position(route, elapsed_in_cycle=60, config=config, rng=random.Random(1))

        final = route.points[-1]
        assert placed.location.latitude == pytest.approx(final.latitude)
        assert placed.location.longitude == pytest.approx(final.longitude)
        assert placed.deviation.distance == 0.0
        assert placed.deviation.duration == 0
        assert placed.progress.percentage == 100.0
        assert placed.progress.current_stop_index == 2
        assert placed.progress.total_stops == 4
        assert placed.progress.time_elapsed == pytest.approx(20.0)

    def test_position_lies_on_segment_without_jitter(self) -> None:
        route = _route()
        config = SimulationConfig(jitter_degrees=0.0)

        # raw 3/120 * 10 = 0.25 of the route: three quarters into the first segment.
        placed = compute_route_position(route, elapsed_in_cycle=3, config=config, rng=random.Random(1))

        expected = interpolate(route.points[0], route.points[1], 0.75)
        assert placed.location.as_tuple() == pytest.approx(expected.as_tuple())
        assert placed.progress.current_stop_index == 0
        assert placed.progress.compressed_progress == pytest.approx(0.25)
        assert placed.progress.time_elapsed == pytest.approx(5.0)

    def test_jitter_reported_as_deviation(self) -> None:
        route = _route()
        config = SimulationConfig(jitter_degrees=0.001)

        placed = compute_route_position(route, elapsed_in_cycle=3, config=config, rng=random.Random(3))

        assert placed.deviation.distance == pytest.approx(distance_meters(placed.location, placed.ideal_location))
        # Half of 0.001 degrees per axis stays well under 100 m.
        assert 0 < placed.deviation.distance < 100

    def test_unfollowable_route_rejected(self) -> None:
        with pytest.raises(RouteDataError) as exc_info:
            compute_route_position(
                _route(stops=1),
                elapsed_in_cycle=0,
                config=SimulationConfig(),
                rng=random.Random(1),
            )
        assert exc_info.value.route_id == "r1"


class TestScenarioCursor:
    def test_walks_snapshots_then_next_scenario(self) -> None:
        cursor = ScenarioCursor()
        positions = [cursor.advance() for _ in range(5)]

        assert [p.snapshot_index for p in positions] == [0, 1, 2, 3, 0]
        assert positions[0].scenario.name == "Morning Rush Hour"
        assert positions[4].scenario.name == "Afternoon Normal"

    def test_wraps_library(self) -> None:
        cursor = ScenarioCursor()
        total = sum(len(scenario.snapshots) for scenario in DEFAULT_SCENARIOS)
        for _ in range(total):
            cursor.advance()
        assert cursor.peek().scenario_index == 0
        assert cursor.peek().snapshot_index == 0

    def test_empty_library_rejected(self) -> None:
        with pytest.raises(ValueError):
            ScenarioCursor(())


class TestMovementSimulator:
    def test_route_mode(self) -> None:
        simulator = MovementSimulator(SimulationConfig(jitter_degrees=0.0), rng=random.Random(5))
        route = _route()

        sample = simulator.sample(
            _vehicle(), route, simulator.next_scenario_position(), CYCLE_START + timedelta(seconds=60)
        )

        assert sample.mode == SampleMode.ROUTE
        assert sample.route.route_id == "r1"
        assert sample.route.progress is not None
        assert sample.route.progress.percentage == 100.0
        assert sample.location.latitude == pytest.approx(route.points[-1].latitude)

    def test_scenario_mode_without_route(self) -> None:
        simulator = MovementSimulator(SimulationConfig(), rng=random.Random(5))
        position = simulator.next_scenario_position()
        snapshot = position.snapshot

        sample = simulator.sample(_vehicle(route=None), None, position, CYCLE_START)

        assert sample.mode == SampleMode.SCENARIO
        assert sample.route.progress is None
        assert sample.route.deviation.distance == 0.0
        assert snapshot.current_speed * 0.9 <= sample.current_speed <= snapshot.current_speed * 1.1
        assert sample.max_speed >= sample.current_speed
        assert abs(sample.location.latitude - snapshot.location.latitude) <= 0.005
        assert sample.events == snapshot.events
        assert 0 <= sample.device_health.battery_level <= 100

    def test_short_route_falls_back_to_scenario(self) -> None:
        simulator = MovementSimulator(SimulationConfig(), rng=random.Random(5))
        sample = simulator.sample(_vehicle(), _route(stops=1), simulator.next_scenario_position(), CYCLE_START)
        assert sample.mode == SampleMode.SCENARIO
        assert sample.route.route_id == "r1"

    def test_seeded_runs_are_reproducible(self) -> None:
        def _run() -> list[tuple[float, float, float]]:
            simulator = MovementSimulator(SimulationConfig(seed=42))
            out = []
            for tick in range(3):
                position = simulator.next_scenario_position()
                now = CYCLE_START + timedelta(seconds=30 * tick)
                sample = simulator.sample(_vehicle(route=None), None, position, now)
                out.append((sample.location.latitude, sample.location.longitude, sample.current_speed))
            return out

        assert _run() == _run()
