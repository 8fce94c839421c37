"""Data models for fleetsim records."""

from fleetsim.models._base import FleetBaseModel, FleetEnum, UtcDatetime, ensure_utc
from fleetsim.models.geo import Coordinate
from fleetsim.models.history import HistoryEntry
from fleetsim.models.telemetry import (
    DeviceHealth,
    Performance,
    RouteContext,
    RouteDeviation,
    RouteProgress,
    SampleMode,
    TelemetrySample,
    Traffic,
    VehicleHealth,
    Weather,
)
from fleetsim.models.trigger import (
    ConditionBasedConditions,
    EventBasedConditions,
    Geofence,
    GeofenceEvent,
    GeofenceShape,
    IntegrationBasedConditions,
    LocationBasedConditions,
    PerformanceBasedConditions,
    RouteDeviationConditions,
    SpeedBasedConditions,
    TimeBasedConditions,
    TimeWindow,
    Trigger,
    TriggerConditions,
    TriggerType,
    parse_conditions,
)
from fleetsim.models.vehicle import ContextData, CurrentLocation, Route, Stop, Vehicle, VehicleStatus

__all__ = [
    "ConditionBasedConditions",
    "ContextData",
    "Coordinate",
    "CurrentLocation",
    "DeviceHealth",
    "EventBasedConditions",
    "FleetBaseModel",
    "FleetEnum",
    "Geofence",
    "GeofenceEvent",
    "GeofenceShape",
    "HistoryEntry",
    "IntegrationBasedConditions",
    "LocationBasedConditions",
    "Performance",
    "PerformanceBasedConditions",
    "Route",
    "RouteContext",
    "RouteDeviation",
    "RouteDeviationConditions",
    "RouteProgress",
    "SampleMode",
    "SpeedBasedConditions",
    "Stop",
    "TelemetrySample",
    "TimeBasedConditions",
    "TimeWindow",
    "Traffic",
    "Trigger",
    "TriggerConditions",
    "TriggerType",
    "UtcDatetime",
    "Vehicle",
    "VehicleHealth",
    "VehicleStatus",
    "Weather",
    "ensure_utc",
    "parse_conditions",
]
