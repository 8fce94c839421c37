"""Vehicle and route records supplied by the storage collaborator."""

from __future__ import annotations

from pydantic import AliasChoices, Field, field_validator

from fleetsim._constants import SIMULATED_STATUSES
from fleetsim.models._base import FleetBaseModel, FleetEnum, UtcDatetime
from fleetsim.models.geo import Coordinate
from fleetsim.models.telemetry import DeviceHealth, Performance, RouteContext, Traffic, Weather


class VehicleStatus(FleetEnum):
    """Operational status of a vehicle."""

    UNKNOWN = "unknown"
    AVAILABLE = "available"
    IN_USE = "in_use"
    MAINTENANCE = "maintenance"
    OUT_OF_SERVICE = "out_of_service"


class CurrentLocation(FleetBaseModel):
    latitude: float
    longitude: float
    updated_at: UtcDatetime

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)


class ContextData(FleetBaseModel):
    """Latest derived context, overwritten in full on every tick."""

    weather: Weather = Field(default_factory=Weather)
    traffic: Traffic = Field(default_factory=Traffic)
    performance: Performance = Field(default_factory=Performance)
    route: RouteContext = Field(default_factory=RouteContext)
    device_health: DeviceHealth = Field(default_factory=DeviceHealth)
    events: tuple[str, ...] = ()
    heading: float = 0.0
    source: str = "simulator"
    last_updates: dict[str, UtcDatetime] = Field(default_factory=dict)


class Vehicle(FleetBaseModel):
    """A fleet vehicle.

    Parameters
    ----------
    id : str
        Vehicle identifier.
    status : VehicleStatus
        Only ``available`` and ``in_use`` vehicles are simulated.
    assigned_route : str or None
        Route id the vehicle follows; ``None`` means scenario replay.
    current_driver : str or None
        Driver id, carried through untouched.
    current_location : CurrentLocation or None
        Last recorded position.
    current_speed, average_speed : float
        km/h.
    mileage : float
        Odometer in km, advanced by the simulator.
    total_passengers_ferried : int
        Passengers boarded at stop arrivals.
    total_trips : float
        Trips credited in tenths, one tenth per stop arrival.
    estimated_arrival_time : str or None
        Local ``HH:MM`` at which the current trip should end; ``None`` when stationary.
    context_data : ContextData
        Last derived context blob.
    """

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    plate_number: str | None = None
    status: VehicleStatus = VehicleStatus.AVAILABLE
    assigned_route: str | None = None
    current_driver: str | None = None
    current_location: CurrentLocation | None = None
    current_speed: float = 0.0
    average_speed: float = 0.0
    mileage: float = 0.0
    total_passengers_ferried: int = 0
    total_trips: float = 0.0
    estimated_arrival_time: str | None = None
    context_data: ContextData = Field(default_factory=ContextData)

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: object) -> str:
        text = str(value).strip()
        if not text:
            raise ValueError("vehicle id must be non-empty")
        return text

    @field_validator("assigned_route", "current_driver", mode="before")
    @classmethod
    def _ref_to_id(cls, value: object) -> object:
        # Populated references arrive as nested records.
        if isinstance(value, dict):
            return value.get("id") or value.get("_id")
        return value

    @property
    def is_simulated(self) -> bool:
        return self.status.value in SIMULATED_STATUSES

    @property
    def label(self) -> str:
        return self.plate_number or self.id


class Stop(FleetBaseModel):
    coordinates: Coordinate
    sequence: int = 0
    name: str | None = None


class Route(FleetBaseModel):
    """An ordered list of stops. Stops are sorted by ``sequence`` on load."""

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    name: str = ""
    stops: tuple[Stop, ...] = ()

    @field_validator("stops")
    @classmethod
    def _order_stops(cls, value: tuple[Stop, ...]) -> tuple[Stop, ...]:
        return tuple(sorted(value, key=lambda stop: stop.sequence))

    @property
    def is_followable(self) -> bool:
        return len(self.stops) >= 2

    @property
    def points(self) -> list[Coordinate]:
        return [stop.coordinates for stop in self.stops]
