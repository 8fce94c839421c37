"""Trigger records and their typed condition payloads.

A trigger's ``type`` selects exactly one condition model. Storage records may
carry the payload flat (``{"thresholds": ...}``) or nested under the category
key (``{"speedBased": {"thresholds": ...}}``); both validate to the same
variant. Unknown types keep ``conditions=None`` and never fire.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, Field, field_validator, model_validator

from fleetsim.models._base import FleetBaseModel, FleetEnum, UtcDatetime
from fleetsim.models.geo import Coordinate


class TriggerType(FleetEnum):
    """Trigger categories."""

    UNKNOWN = "unknown"
    TIME_BASED = "time_based"
    LOCATION_BASED = "location_based"
    SPEED_BASED = "speed_based"
    EVENT_BASED = "event_based"
    CONDITION_BASED = "condition_based"
    ROUTE_DEVIATION = "route_deviation"
    PERFORMANCE_BASED = "performance_based"
    INTEGRATION_BASED = "integration_based"


class TriggerPriority(FleetEnum):
    UNKNOWN = "unknown"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# ------------------------------------------------------------------
# Time based
# ------------------------------------------------------------------


class TimeWindow(FleetBaseModel):
    """A daily window in local ``HH:MM`` time. ``end`` before ``start`` wraps midnight."""

    start: str
    end: str
    update_interval: float | None = None

    @field_validator("start", "end")
    @classmethod
    def _validate_hhmm(cls, value: str) -> str:
        hours, sep, minutes = value.strip().partition(":")
        if not sep or not hours.isdigit() or not minutes.isdigit():
            raise ValueError(f"time must be HH:MM, got {value!r}")
        h, m = int(hours), int(minutes)
        if not (0 <= h <= 23 and 0 <= m <= 59):
            raise ValueError(f"time out of range: {value!r}")
        return f"{h:02d}:{m:02d}"

    @staticmethod
    def _minutes(text: str) -> int:
        hours, _, minutes = text.partition(":")
        return int(hours) * 60 + int(minutes)

    def contains(self, minute_of_day: int) -> bool:
        start = self._minutes(self.start)
        end = self._minutes(self.end)
        if start <= end:
            return start <= minute_of_day <= end
        return minute_of_day >= start or minute_of_day <= end


class TimeWindows(FleetBaseModel):
    peak_hours: TimeWindow | None = None
    off_peak: TimeWindow | None = None
    night: TimeWindow | None = None

    def configured(self) -> list[tuple[str, TimeWindow]]:
        windows = (("peak_hours", self.peak_hours), ("off_peak", self.off_peak), ("night", self.night))
        return [(name, window) for name, window in windows if window is not None]


class TimeBasedConditions(FleetBaseModel):
    """``interval`` (minutes) is the fallback for windows without ``update_interval``."""

    interval: float = 15.0
    time_windows: TimeWindows = Field(default_factory=TimeWindows)


# ------------------------------------------------------------------
# Location based
# ------------------------------------------------------------------


class GeofenceShape(FleetEnum):
    UNKNOWN = "unknown"
    CIRCLE = "circle"
    POLYGON = "polygon"
    RECTANGLE = "rectangle"


class GeofenceEvent(FleetEnum):
    UNKNOWN = "unknown"
    ENTER = "enter"
    EXIT = "exit"
    DWELL = "dwell"


class Geofence(FleetBaseModel):
    """Circular, polygonal or rectangular region.

    ``coordinates`` are ``[lat, lng]`` pairs. A circle may be given by
    ``center`` or by its first coordinate; a rectangle by two opposite corners.
    When ``type`` is missing it is inferred from the fields present.
    """

    type: GeofenceShape = GeofenceShape.UNKNOWN
    center: Coordinate | None = None
    radius: float | None = Field(default=None, ge=0.0)
    coordinates: tuple[Coordinate, ...] = ()
    events: tuple[GeofenceEvent, ...] = ()

    @field_validator("coordinates", mode="before")
    @classmethod
    def _pairs_to_coordinates(cls, value: Any) -> Any:
        if not isinstance(value, (list, tuple)):
            return value
        converted: list[Any] = []
        for item in value:
            if isinstance(item, (list, tuple)) and len(item) == 2:
                converted.append({"latitude": item[0], "longitude": item[1]})
            else:
                converted.append(item)
        return converted

    @model_validator(mode="after")
    def _infer_shape(self) -> Geofence:
        if self.type != GeofenceShape.UNKNOWN:
            return self
        if self.radius is not None and (self.center is not None or self.coordinates):
            shape = GeofenceShape.CIRCLE
        elif len(self.coordinates) == 2:
            shape = GeofenceShape.RECTANGLE
        elif len(self.coordinates) >= 3:
            shape = GeofenceShape.POLYGON
        else:
            return self
        object.__setattr__(self, "type", shape)
        return self

    @property
    def circle_center(self) -> Coordinate | None:
        if self.center is not None:
            return self.center
        return self.coordinates[0] if self.coordinates else None


class DistanceCondition(FleetBaseModel):
    threshold: float = Field(ge=0.0)
    min_time_between_updates: float | None = None


class LocationBasedConditions(FleetBaseModel):
    geofence: Geofence | None = None
    distance: DistanceCondition | None = None


# ------------------------------------------------------------------
# Speed based
# ------------------------------------------------------------------


class SpeedThresholds(FleetBaseModel):
    high: float | None = None
    low: float | None = None
    normal: float | None = None


class SpeedChange(FleetBaseModel):
    percentage: float
    time_window: float | None = None


class SpeedBasedConditions(FleetBaseModel):
    thresholds: SpeedThresholds = Field(default_factory=SpeedThresholds)
    change: SpeedChange | None = None


# ------------------------------------------------------------------
# Event based
# ------------------------------------------------------------------


class EventFlags(FleetBaseModel):
    """Field names double as the event names found in telemetry."""

    trip_start: bool = False
    trip_end: bool = False
    stop_arrival: bool = False
    stop_departure: bool = False
    status_change: bool = False
    maintenance: bool = False

    def enabled(self) -> frozenset[str]:
        return frozenset(name for name, flag in self.model_dump().items() if flag)


class EventBasedConditions(FleetBaseModel):
    events: EventFlags = Field(default_factory=EventFlags)


# ------------------------------------------------------------------
# Condition based
# ------------------------------------------------------------------


class WeatherFlags(FleetBaseModel):
    severe: bool = False
    moderate: bool = False


class TrafficFlags(FleetBaseModel):
    heavy: bool = False
    light: bool = False


class VehicleConditionFlags(FleetBaseModel):
    low_fuel: bool = False
    maintenance: bool = False
    error: bool = False


class ConditionBasedConditions(FleetBaseModel):
    weather: WeatherFlags | None = None
    traffic: TrafficFlags | None = None
    vehicle: VehicleConditionFlags | None = None


# ------------------------------------------------------------------
# Route deviation
# ------------------------------------------------------------------


class DeviationDistance(FleetBaseModel):
    from_route: float = Field(ge=0.0)
    time_window: float | None = None


class AllowedDeviation(FleetBaseModel):
    distance: float | None = None
    duration: float | None = None


class RouteDeviationConditions(FleetBaseModel):
    distance: DeviationDistance
    allowed_deviation: AllowedDeviation | None = None


# ------------------------------------------------------------------
# Performance based
# ------------------------------------------------------------------


class PerformanceMetrics(FleetBaseModel):
    fuel_efficiency: bool = False
    speed_variation: bool = False
    idle_time: bool = False
    stop_duration: bool = False


class PerformanceThresholds(FleetBaseModel):
    fuel_efficiency: float | None = None
    speed_variation: float | None = None
    idle_time: float | None = None
    stop_duration: float | None = None


class PerformanceBasedConditions(FleetBaseModel):
    metrics: PerformanceMetrics = Field(default_factory=PerformanceMetrics)
    thresholds: PerformanceThresholds = Field(default_factory=PerformanceThresholds)


# ------------------------------------------------------------------
# Integration based
# ------------------------------------------------------------------


class IntegrationSystems(FleetBaseModel):
    traffic_api: bool = Field(default=False, validation_alias=AliasChoices("trafficAPI", "trafficApi", "traffic_api"))
    weather_api: bool = Field(default=False, validation_alias=AliasChoices("weatherAPI", "weatherApi", "weather_api"))
    maintenance_system: bool = False
    customer_app: bool = False


class IntegrationFrequencies(FleetBaseModel):
    """Seconds between expected updates per system."""

    traffic: float | None = None
    weather: float | None = None
    maintenance: float | None = None
    customer_app: float | None = None


#: Enabled-system flag → key in ``update_frequency`` and in ``last_updates``.
INTEGRATION_SYSTEM_KEYS: dict[str, str] = {
    "traffic_api": "traffic",
    "weather_api": "weather",
    "maintenance_system": "maintenance",
    "customer_app": "customer_app",
}


class IntegrationBasedConditions(FleetBaseModel):
    systems: IntegrationSystems = Field(default_factory=IntegrationSystems)
    update_frequency: IntegrationFrequencies = Field(default_factory=IntegrationFrequencies)

    def enabled_keys(self) -> list[str]:
        flags = self.systems.model_dump()
        return [key for flag, key in INTEGRATION_SYSTEM_KEYS.items() if flags.get(flag)]


TriggerConditions = (
    TimeBasedConditions
    | LocationBasedConditions
    | SpeedBasedConditions
    | EventBasedConditions
    | ConditionBasedConditions
    | RouteDeviationConditions
    | PerformanceBasedConditions
    | IntegrationBasedConditions
)

_CONDITION_MODELS: dict[TriggerType, tuple[str, type[FleetBaseModel]]] = {
    TriggerType.TIME_BASED: ("timeBased", TimeBasedConditions),
    TriggerType.LOCATION_BASED: ("locationBased", LocationBasedConditions),
    TriggerType.SPEED_BASED: ("speedBased", SpeedBasedConditions),
    TriggerType.EVENT_BASED: ("eventBased", EventBasedConditions),
    TriggerType.CONDITION_BASED: ("conditionBased", ConditionBasedConditions),
    TriggerType.ROUTE_DEVIATION: ("routeDeviation", RouteDeviationConditions),
    TriggerType.PERFORMANCE_BASED: ("performanceBased", PerformanceBasedConditions),
    TriggerType.INTEGRATION_BASED: ("integrationBased", IntegrationBasedConditions),
}


def parse_conditions(trigger_type: TriggerType, payload: Any) -> TriggerConditions | None:
    """Validate *payload* into the condition variant for *trigger_type*.

    Returns ``None`` for unknown types and empty payloads. Raises ``pydantic.ValidationError`` when
    the payload does not fit the variant.
    """
    entry = _CONDITION_MODELS.get(trigger_type)
    if entry is None:
        return None
    key, model_cls = entry
    if isinstance(payload, model_cls):
        return payload  # type: ignore[return-value]
    if isinstance(payload, dict):
        nested = payload.get(key, payload.get(trigger_type.value))
        if isinstance(nested, dict):
            payload = nested
    if not payload:
        return None
    return model_cls.model_validate(payload)  # type: ignore[return-value]


class TriggerMetadata(FleetBaseModel):
    description: str = ""
    priority: TriggerPriority = TriggerPriority.MEDIUM
    tags: tuple[str, ...] = ()


class Trigger(FleetBaseModel):
    """A conditional rule scoped to one vehicle.

    Parameters
    ----------
    id : str
        Trigger identifier.
    vehicle : str
        Id of the owning vehicle.
    type : TriggerType
        Category; selects the ``conditions`` variant.
    conditions : TriggerConditions or None
        Typed payload. ``None`` for unknown categories.
    is_active : bool
        Inactive triggers are never evaluated.
    last_triggered : datetime or None
        When the trigger last fired.
    cooldown_seconds : float or None
        Minimum time between firings; falls back to the engine default.
    """

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    vehicle: str = Field(validation_alias=AliasChoices("vehicle", "vehicleId", "vehicle_id"))
    name: str = ""
    type: TriggerType = TriggerType.UNKNOWN
    conditions: TriggerConditions | None = None
    is_active: bool = True
    last_triggered: UtcDatetime | None = None
    cooldown_seconds: float | None = Field(default=None, ge=0.0)
    metadata: TriggerMetadata = Field(default_factory=TriggerMetadata)

    @field_validator("vehicle", mode="before")
    @classmethod
    def _ref_to_id(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return value.get("id") or value.get("_id")
        return value

    @model_validator(mode="before")
    @classmethod
    def _select_condition_variant(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        working = dict(values)
        trigger_type = TriggerType(working.get("type") or TriggerType.UNKNOWN)
        working["type"] = trigger_type
        working["conditions"] = parse_conditions(trigger_type, working.get("conditions"))
        return working

    def fired_at(self, when: datetime) -> Trigger:
        """Copy with ``last_triggered`` set to *when*."""
        return self.model_copy(update={"last_triggered": when})
