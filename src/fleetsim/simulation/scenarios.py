"""Canned telemetry scenarios for vehicles without a followable route.

Each scenario is a short ordered list of snapshots. The cursor advances one
snapshot per tick and moves on to the next scenario after the last snapshot,
wrapping around the whole library.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import Field

from fleetsim.models._base import FleetBaseModel
from fleetsim.models.geo import Coordinate
from fleetsim.models.telemetry import DeviceHealth, Performance, Traffic, Weather


class ScenarioSnapshot(FleetBaseModel):
    location: Coordinate
    current_speed: float
    average_speed: float
    max_speed: float
    heading: float
    events: tuple[str, ...] = ()
    weather: Weather = Field(default_factory=Weather)
    traffic: Traffic = Field(default_factory=Traffic)
    performance: Performance = Field(default_factory=Performance)
    device_health: DeviceHealth = Field(default_factory=DeviceHealth)
    source: str = "gps"


class Scenario(FleetBaseModel):
    name: str
    snapshots: tuple[ScenarioSnapshot, ...]


def _snap(
    lat: float,
    lon: float,
    speed: tuple[float, float, float],
    heading: float,
    event: str,
    weather: tuple[str, float],
    traffic: tuple[str, str],
    perf: tuple[float, float, float],
    device: tuple[float, float, float],
) -> dict[str, Any]:
    return {
        "location": {"latitude": lat, "longitude": lon},
        "current_speed": speed[0],
        "average_speed": speed[1],
        "max_speed": speed[2],
        "heading": heading,
        "events": (event,),
        "weather": {"condition": weather[0], "severity": "normal", "temperature": weather[1]},
        "traffic": {"level": traffic[0], "description": traffic[1]},
        "performance": {"fuel_efficiency": perf[0], "idle_time": perf[1], "stop_duration": perf[2]},
        "device_health": {"accuracy": device[0], "battery_level": device[1], "signal_strength": device[2]},
    }


# Nairobi CBD heading south-east.
_LIBRARY: tuple[dict[str, Any], ...] = (
    {
        "name": "Morning Rush Hour",
        "snapshots": (
            _snap(-1.2921, 36.8219, (15, 20, 45), 90, "trip_start", ("clear", 22), ("heavy", "Rush hour traffic"),
                  (8.5, 120, 30), (5, 85, 90)),
            _snap(-1.2950, 36.8250, (25, 22, 45), 95, "stop_arrival", ("clear", 23), ("moderate", "Moving traffic"),
                  (9.2, 60, 45), (3, 84, 88)),
            _snap(-1.2980, 36.8280, (35, 28, 50), 100, "stop_departure", ("partly_cloudy", 24),
                  ("light", "Free flowing"), (10.1, 30, 20), (4, 83, 92)),
            _snap(-1.3010, 36.8310, (40, 32, 55), 105, "status_change", ("clear", 25), ("light", "Highway traffic"),
                  (11.5, 15, 10), (2, 82, 95)),
        ),
    },
    {
        "name": "Afternoon Normal",
        "snapshots": (
            _snap(-1.3040, 36.8340, (30, 35, 60), 110, "trip_start", ("sunny", 28), ("normal", "Regular traffic flow"),
                  (12.0, 45, 25), (3, 80, 87)),
            _snap(-1.3070, 36.8370, (45, 38, 65), 115, "stop_arrival", ("sunny", 29), ("moderate", "Steady traffic"),
                  (11.8, 90, 60), (4, 79, 85)),
            _snap(-1.3100, 36.8400, (50, 42, 70), 120, "stop_departure", ("clear", 30), ("light", "Smooth traffic"),
                  (13.2, 20, 15), (2, 78, 90)),
            _snap(-1.3130, 36.8430, (55, 45, 75), 125, "trip_end", ("sunny", 31), ("light", "Free flowing"),
                  (14.0, 10, 5), (1, 77, 93)),
        ),
    },
    {
        "name": "Evening Rush Hour",
        "snapshots": (
            _snap(-1.3160, 36.8460, (20, 18, 40), 130, "trip_start", ("cloudy", 26), ("heavy", "Evening rush hour"),
                  (7.5, 180, 90), (5, 75, 82)),
            _snap(-1.3190, 36.8490, (15, 16, 35), 135, "stop_arrival", ("cloudy", 25),
                  ("very_heavy", "Gridlock traffic"), (6.8, 240, 120), (6, 74, 80)),
            _snap(-1.3220, 36.8520, (25, 20, 45), 140, "stop_departure", ("partly_cloudy", 24),
                  ("heavy", "Slow moving traffic"), (8.2, 120, 75), (4, 73, 85)),
            _snap(-1.3250, 36.8550, (30, 25, 50), 145, "trip_end", ("clear", 23), ("moderate", "Improving traffic"),
                  (9.5, 60, 30), (3, 72, 88)),
        ),
    },
)

DEFAULT_SCENARIOS: tuple[Scenario, ...] = tuple(Scenario.model_validate(item) for item in _LIBRARY)


@dataclass(frozen=True, slots=True)
class ScenarioPosition:
    """Where the cursor pointed when a snapshot was handed out."""

    scenario: Scenario
    scenario_index: int
    snapshot_index: int

    @property
    def snapshot(self) -> ScenarioSnapshot:
        return self.scenario.snapshots[self.snapshot_index]


class ScenarioCursor:
    """Walks the scenario library one snapshot per call to :meth:`advance`."""

    def __init__(self, scenarios: tuple[Scenario, ...] = DEFAULT_SCENARIOS) -> None:
        if not scenarios or any(not scenario.snapshots for scenario in scenarios):
            raise ValueError("scenario library must contain non-empty scenarios")
        self._scenarios = scenarios
        self._scenario_index = 0
        self._snapshot_index = 0

    @property
    def scenarios(self) -> tuple[Scenario, ...]:
        return self._scenarios

    def peek(self) -> ScenarioPosition:
        """Position the next :meth:`advance` will return."""
        scenario = self._scenarios[self._scenario_index]
        return ScenarioPosition(scenario, self._scenario_index, self._snapshot_index)

    def advance(self) -> ScenarioPosition:
        """Return the current snapshot and move the cursor forward."""
        position = self.peek()
        self._snapshot_index += 1
        if self._snapshot_index >= len(position.scenario.snapshots):
            self._snapshot_index = 0
            self._scenario_index = (self._scenario_index + 1) % len(self._scenarios)
        return position
