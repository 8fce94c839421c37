"""Telemetry sample and its context blocks.

A :class:`TelemetrySample` is produced fresh for every vehicle on every tick.
It is never persisted as such; the recorder folds it into history entries
and the vehicle's ``context_data``.
"""

from __future__ import annotations

from pydantic import Field, field_validator

from fleetsim.models._base import FleetBaseModel, FleetEnum, UtcDatetime
from fleetsim.models.geo import Coordinate


class SampleMode(FleetEnum):
    """How a sample's position was produced."""

    UNKNOWN = "unknown"
    ROUTE = "route"
    SCENARIO = "scenario"


class Weather(FleetBaseModel):
    condition: str = "clear"
    severity: str = "normal"
    temperature: float | None = None


class Traffic(FleetBaseModel):
    level: str = "normal"
    description: str = ""


class Performance(FleetBaseModel):
    """Performance metrics.

    ``fuel_efficiency`` in km/l, ``idle_time`` and ``stop_duration`` in seconds.
    """

    fuel_efficiency: float = 0.0
    idle_time: float = 0.0
    stop_duration: float = 0.0


class RouteDeviation(FleetBaseModel):
    """Distance (m) and estimated duration (s) off the ideal route line."""

    distance: float = 0.0
    duration: float = 0.0


class RouteProgress(FleetBaseModel):
    """Progress of a route-following vehicle through the current cycle.

    Parameters
    ----------
    percentage : float
        Compressed progress as a percentage, 0 to 100.
    distance_traveled : float
        Kilometers covered along the route.
    time_elapsed : float
        Simulated minutes since the start of the cycle.
    current_stop_index : int
        Index of the stop the current segment starts from.
    total_stops : int
        Number of stops on the route.
    compressed_progress : float
        Fraction of the route covered, 0 to 1.
    """

    percentage: float = 0.0
    distance_traveled: float = 0.0
    time_elapsed: float = 0.0
    current_stop_index: int = 0
    total_stops: int = 0
    compressed_progress: float = 0.0


class RouteContext(FleetBaseModel):
    route_id: str | None = None
    deviation: RouteDeviation = Field(default_factory=RouteDeviation)
    progress: RouteProgress | None = None


class DeviceHealth(FleetBaseModel):
    battery_level: float = 100.0
    signal_strength: float = 100.0
    accuracy: float | None = None


class VehicleHealth(FleetBaseModel):
    """Discrete vehicle condition flags checked by condition triggers."""

    low_fuel: bool = False
    maintenance: bool = False
    error: bool = False


class TelemetrySample(FleetBaseModel):
    """One tick's worth of telemetry for one vehicle.

    All fields are populated by the simulator; speeds are never negative.
    """

    vehicle_id: str
    recorded_at: UtcDatetime
    mode: SampleMode = SampleMode.SCENARIO
    location: Coordinate
    current_speed: float = Field(default=0.0, ge=0.0)
    average_speed: float = Field(default=0.0, ge=0.0)
    max_speed: float = Field(default=0.0, ge=0.0)
    heading: float = 0.0
    weather: Weather = Field(default_factory=Weather)
    traffic: Traffic = Field(default_factory=Traffic)
    performance: Performance = Field(default_factory=Performance)
    route: RouteContext = Field(default_factory=RouteContext)
    device_health: DeviceHealth = Field(default_factory=DeviceHealth)
    vehicle_health: VehicleHealth = Field(default_factory=VehicleHealth)
    last_updates: dict[str, UtcDatetime] = Field(default_factory=dict)
    events: tuple[str, ...] = ()
    source: str = "simulator"

    @field_validator("heading")
    @classmethod
    def _normalize_heading(cls, value: float) -> float:
        return value % 360.0

    @property
    def route_deviation_m(self) -> float:
        return self.route.deviation.distance
