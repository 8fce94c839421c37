"""Telemetry simulation.

Route following under time compression and canned scenario replay.
"""

from fleetsim.simulation.movement import (
    MovementSimulator,
    RoutePosition,
    compressed_progress,
    compute_route_position,
    locate_on_route,
)
from fleetsim.simulation.scenarios import DEFAULT_SCENARIOS, Scenario, ScenarioCursor, ScenarioPosition, ScenarioSnapshot

__all__ = [
    "DEFAULT_SCENARIOS",
    "MovementSimulator",
    "RoutePosition",
    "Scenario",
    "ScenarioCursor",
    "ScenarioPosition",
    "ScenarioSnapshot",
    "compressed_progress",
    "compute_route_position",
    "locate_on_route",
]
