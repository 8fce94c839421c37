"""Trigger predicates.

One pure function per trigger category. Each takes the trigger's typed
conditions and a :class:`PredicateContext` and answers "fire / don't fire".
:func:`evaluate_trigger` dispatches on the condition variant.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo

from fleetsim.geo import distance_meters, point_in_polygon, point_in_rectangle
from fleetsim.models.geo import Coordinate
from fleetsim.models.telemetry import SampleMode, TelemetrySample
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
    Trigger,
)
from fleetsim.models.vehicle import Vehicle

_logger = logging.getLogger(__name__)

_HEAVY_TRAFFIC_LEVELS = frozenset({"heavy", "very_heavy"})
_LIGHT_TRAFFIC_LEVELS = frozenset({"light"})


@dataclass(frozen=True, slots=True)
class PredicateContext:
    """Everything a predicate may look at.

    All predicates for one vehicle in one tick share the same context, so a
    firing can never leak into another trigger's evaluation.
    """

    sample: TelemetrySample
    now: datetime
    prior: TelemetrySample | None = None
    vehicle: Vehicle | None = None
    last_triggered: datetime | None = None
    tz: tzinfo = UTC


def time_based(conditions: TimeBasedConditions, ctx: PredicateContext) -> bool:
    """Inside a configured window and at least ``update_interval`` minutes since the last firing."""
    local = ctx.now.astimezone(ctx.tz)
    minute_of_day = local.hour * 60 + local.minute

    for name, window in conditions.time_windows.configured():
        if not window.contains(minute_of_day):
            continue
        if ctx.last_triggered is None:
            return True
        interval = window.update_interval if window.update_interval is not None else conditions.interval
        minutes_since = (ctx.now - ctx.last_triggered).total_seconds() / 60.0
        _logger.debug("Time window %s open, %.1f min since last firing (interval %s)", name, minutes_since, interval)
        return minutes_since >= interval
    return False


def _inside_geofence(geofence: Geofence, point: Coordinate) -> bool:
    match geofence.type:
        case GeofenceShape.CIRCLE:
            center = geofence.circle_center
            if center is None or geofence.radius is None:
                return False
            return distance_meters(center, point) <= geofence.radius
        case GeofenceShape.POLYGON:
            return point_in_polygon(point, geofence.coordinates)
        case GeofenceShape.RECTANGLE:
            if len(geofence.coordinates) < 2:
                return False
            return point_in_rectangle(point, geofence.coordinates[0], geofence.coordinates[1])
        case _:
            return False


def _geofence_fires(geofence: Geofence, ctx: PredicateContext) -> bool:
    inside = _inside_geofence(geofence, ctx.sample.location)
    if not geofence.events:
        return inside

    was_inside = ctx.prior is not None and _inside_geofence(geofence, ctx.prior.location)
    for event in geofence.events:
        if event == GeofenceEvent.ENTER and inside and not was_inside:
            return True
        if event == GeofenceEvent.EXIT and was_inside and not inside:
            return True
        if event == GeofenceEvent.DWELL and inside:
            return True
    return False


def location_based(conditions: LocationBasedConditions, ctx: PredicateContext) -> bool:
    """Inside the geofence, or moved at least ``distance.threshold`` meters since the prior sample."""
    if conditions.geofence is not None and _geofence_fires(conditions.geofence, ctx):
        return True

    if conditions.distance is not None and ctx.prior is not None:
        moved = distance_meters(ctx.prior.location, ctx.sample.location)
        return moved >= conditions.distance.threshold
    return False


def speed_based(conditions: SpeedBasedConditions, ctx: PredicateContext) -> bool:
    """Speed at or beyond a threshold (inclusive), or a large enough change since the prior sample."""
    speed = ctx.sample.current_speed
    thresholds = conditions.thresholds
    if thresholds.high is not None and speed >= thresholds.high:
        return True
    if thresholds.low is not None and speed <= thresholds.low:
        return True

    change = conditions.change
    prior = ctx.prior
    if change is None or prior is None or prior.current_speed <= 0:
        return False
    if change.time_window is not None:
        age = (ctx.sample.recorded_at - prior.recorded_at).total_seconds()
        if age > change.time_window:
            return False
    percent = abs(speed - prior.current_speed) / prior.current_speed * 100.0
    return percent >= change.percentage


def event_based(conditions: EventBasedConditions, ctx: PredicateContext) -> bool:
    """Any sample event whose flag is enabled."""
    enabled = conditions.events.enabled()
    return any(event in enabled for event in ctx.sample.events)


def condition_based(conditions: ConditionBasedConditions, ctx: PredicateContext) -> bool:
    """Any enabled weather, traffic or vehicle flag matching the sample."""
    sample = ctx.sample
    weather = conditions.weather
    if weather is not None:
        severity = sample.weather.severity.lower()
        if (weather.severe and severity == "severe") or (weather.moderate and severity == "moderate"):
            return True

    traffic = conditions.traffic
    if traffic is not None:
        level = sample.traffic.level.lower()
        if (traffic.heavy and level in _HEAVY_TRAFFIC_LEVELS) or (traffic.light and level in _LIGHT_TRAFFIC_LEVELS):
            return True

    flags = conditions.vehicle
    if flags is not None:
        health = sample.vehicle_health
        if (flags.low_fuel and health.low_fuel) or (flags.maintenance and health.maintenance):
            return True
        if flags.error and health.error:
            return True
    return False


def route_deviation(conditions: RouteDeviationConditions, ctx: PredicateContext) -> bool:
    """Deviation from the ideal route line strictly greater than ``distance.from_route``.

    Only route-following samples carry a deviation.
    """
    if ctx.sample.mode is not SampleMode.ROUTE:
        return False
    return ctx.sample.route_deviation_m > conditions.distance.from_route


def performance_based(conditions: PerformanceBasedConditions, ctx: PredicateContext) -> bool:
    """Any enabled metric with a threshold that the sample meets or exceeds."""
    sample = ctx.sample
    values = {
        "fuel_efficiency": sample.performance.fuel_efficiency,
        "idle_time": sample.performance.idle_time,
        "stop_duration": sample.performance.stop_duration,
        "speed_variation": abs(sample.current_speed - sample.average_speed),
    }
    metrics = conditions.metrics.model_dump()
    thresholds = conditions.thresholds.model_dump()
    for metric, enabled in metrics.items():
        threshold = thresholds.get(metric)
        if enabled and threshold is not None and values[metric] >= threshold:
            return True
    return False


def integration_based(conditions: IntegrationBasedConditions, ctx: PredicateContext) -> bool:
    """Any enabled system whose last update is missing or at least its frequency old."""
    frequencies = conditions.update_frequency.model_dump()
    for key in conditions.enabled_keys():
        frequency = frequencies.get(key)
        if frequency is None:
            continue
        last_update = ctx.sample.last_updates.get(key)
        if last_update is None:
            return True
        if (ctx.now - last_update).total_seconds() >= frequency:
            return True
    return False


def evaluate_trigger(trigger: Trigger, ctx: PredicateContext) -> bool:
    """Run the predicate matching *trigger*'s condition variant.

    Unknown categories and triggers without conditions never fire.
    """
    match trigger.conditions:
        case TimeBasedConditions() as conditions:
            return time_based(conditions, ctx)
        case LocationBasedConditions() as conditions:
            return location_based(conditions, ctx)
        case SpeedBasedConditions() as conditions:
            return speed_based(conditions, ctx)
        case EventBasedConditions() as conditions:
            return event_based(conditions, ctx)
        case ConditionBasedConditions() as conditions:
            return condition_based(conditions, ctx)
        case RouteDeviationConditions() as conditions:
            return route_deviation(conditions, ctx)
        case PerformanceBasedConditions() as conditions:
            return performance_based(conditions, ctx)
        case IntegrationBasedConditions() as conditions:
            return integration_based(conditions, ctx)
        case _:
            return False
