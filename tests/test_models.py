"""Tests for record parsing with FleetBaseModel + FleetEnum."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from fleetsim.models import (
    Coordinate,
    GeofenceShape,
    HistoryEntry,
    IntegrationBasedConditions,
    LocationBasedConditions,
    Route,
    SpeedBasedConditions,
    TelemetrySample,
    TimeWindow,
    Trigger,
    TriggerType,
    Vehicle,
    VehicleStatus,
)


def _dt() -> datetime:
    return datetime(2026, 1, 1, tzinfo=UTC)


# ------------------------------------------------------------------
# FleetEnum
# ------------------------------------------------------------------


class TestFleetEnum:
    def test_unknown_value_falls_back(self) -> None:
        assert VehicleStatus("retired") == VehicleStatus.UNKNOWN

    def test_case_insensitive_lookup(self) -> None:
        assert VehicleStatus("IN_USE") == VehicleStatus.IN_USE

    def test_unknown_in_record(self) -> None:
        vehicle = Vehicle.model_validate({"id": "v1", "status": "scrapped"})
        assert vehicle.status == VehicleStatus.UNKNOWN
        assert not vehicle.is_simulated


# ------------------------------------------------------------------
# Vehicle / Route
# ------------------------------------------------------------------


class TestVehicle:
    def test_parses_storage_record(self) -> None:
        vehicle = Vehicle.model_validate(
            {
                "_id": "veh-1",
                "plateNumber": "KAA 123A",
                "status": "in_use",
                "assignedRoute": {"_id": "route-9", "name": "CBD loop"},
                "currentDriver": "",
                "currentSpeed": 42.5,
                "currentLocation": {"latitude": -1.29, "longitude": 36.82, "updatedAt": "2026-01-01T08:00:00"},
            }
        )
        assert vehicle.id == "veh-1"
        assert vehicle.label == "KAA 123A"
        assert vehicle.assigned_route == "route-9"
        assert vehicle.current_driver is None
        assert vehicle.is_simulated
        assert vehicle.current_location is not None
        assert vehicle.current_location.updated_at.tzinfo is UTC

    @pytest.mark.parametrize("status", ["maintenance", "out_of_service"])
    def test_inactive_statuses_not_simulated(self, status: str) -> None:
        assert not Vehicle(id="v1", status=status).is_simulated

    def test_blank_id_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Vehicle.model_validate({"id": "  "})


class TestRoute:
    def test_stops_sorted_by_sequence(self) -> None:
        route = Route.model_validate(
            {
                "_id": "r1",
                "stops": [
                    {"sequence": 2, "coordinates": {"lat": -1.30, "lng": 36.83}},
                    {"sequence": 1, "coordinates": {"lat": -1.29, "lng": 36.82}},
                ],
            }
        )
        assert [stop.sequence for stop in route.stops] == [1, 2]
        assert route.is_followable
        assert route.points[0].latitude == -1.29

    def test_single_stop_not_followable(self) -> None:
        route = Route.model_validate({"id": "r1", "stops": [{"coordinates": {"lat": 0, "lng": 0}}]})
        assert not route.is_followable


def test_coordinate_range_validated() -> None:
    with pytest.raises(ValidationError):
        Coordinate(latitude=91, longitude=0)
    with pytest.raises(ValidationError):
        Coordinate.model_validate({"lat": 0, "lon": 181})


# ------------------------------------------------------------------
# Trigger
# ------------------------------------------------------------------


class TestTrigger:
    def test_nested_conditions(self) -> None:
        trigger = Trigger.model_validate(
            {
                "_id": "t1",
                "vehicle": {"_id": "v1"},
                "type": "speed_based",
                "conditions": {"speedBased": {"thresholds": {"high": 60, "low": 5}}},
                "lastTriggered": "2026-01-01T06:00:00",
                "isActive": False,
            }
        )
        assert trigger.vehicle == "v1"
        assert trigger.type == TriggerType.SPEED_BASED
        assert isinstance(trigger.conditions, SpeedBasedConditions)
        assert trigger.conditions.thresholds.high == 60
        assert trigger.last_triggered == datetime(2026, 1, 1, 6, 0, tzinfo=UTC)
        assert not trigger.is_active

    def test_flat_conditions(self) -> None:
        trigger = Trigger.model_validate(
            {"id": "t1", "vehicle": "v1", "type": "speed_based", "conditions": {"thresholds": {"high": 80}}}
        )
        assert isinstance(trigger.conditions, SpeedBasedConditions)
        assert trigger.conditions.thresholds.high == 80

    def test_unknown_type_has_no_conditions(self) -> None:
        trigger = Trigger.model_validate(
            {"id": "t1", "vehicle": "v1", "type": "teleport", "conditions": {"anywhere": True}}
        )
        assert trigger.type == TriggerType.UNKNOWN
        assert trigger.conditions is None

    def test_empty_conditions(self) -> None:
        trigger = Trigger.model_validate({"id": "t1", "vehicle": "v1", "type": "speed_based", "conditions": {}})
        assert trigger.conditions is None

    def test_integration_system_aliases(self) -> None:
        trigger = Trigger.model_validate(
            {
                "id": "t1",
                "vehicle": "v1",
                "type": "integration_based",
                "conditions": {
                    "integrationBased": {
                        "systems": {"trafficAPI": True, "customerApp": True},
                        "updateFrequency": {"traffic": 60},
                    }
                },
            }
        )
        assert isinstance(trigger.conditions, IntegrationBasedConditions)
        assert trigger.conditions.enabled_keys() == ["traffic", "customer_app"]

    def test_fired_at_returns_copy(self) -> None:
        trigger = Trigger(id="t1", vehicle="v1")
        fired = trigger.fired_at(_dt())
        assert fired.last_triggered == _dt()
        assert trigger.last_triggered is None


class TestGeofence:
    def _location(self, geofence: dict[str, object]) -> LocationBasedConditions:
        trigger = Trigger.model_validate(
            {"id": "t1", "vehicle": "v1", "type": "location_based", "conditions": {"geofence": geofence}}
        )
        assert isinstance(trigger.conditions, LocationBasedConditions)
        return trigger.conditions

    def test_circle_inferred_from_center_and_radius(self) -> None:
        conditions = self._location({"center": {"latitude": 0, "longitude": 0}, "radius": 100})
        assert conditions.geofence is not None
        assert conditions.geofence.type == GeofenceShape.CIRCLE

    def test_rectangle_inferred_from_two_pairs(self) -> None:
        conditions = self._location({"coordinates": [[0, 0], [1, 1]]})
        assert conditions.geofence is not None
        assert conditions.geofence.type == GeofenceShape.RECTANGLE
        assert conditions.geofence.coordinates[1].longitude == 1

    def test_polygon_inferred_from_three_pairs(self) -> None:
        conditions = self._location({"coordinates": [[0, 0], [0, 1], [1, 1]]})
        assert conditions.geofence is not None
        assert conditions.geofence.type == GeofenceShape.POLYGON


class TestTimeWindow:
    def test_normalizes_hhmm(self) -> None:
        window = TimeWindow(start="7:05", end="9:00")
        assert window.start == "07:05"

    def test_rejects_out_of_range(self) -> None:
        with pytest.raises(ValidationError):
            TimeWindow(start="25:00", end="26:00")

    def test_wraps_midnight(self) -> None:
        window = TimeWindow(start="22:00", end="05:00")
        assert window.contains(23 * 60)
        assert window.contains(2 * 60)
        assert not window.contains(12 * 60)

    def test_bounds_inclusive(self) -> None:
        window = TimeWindow(start="07:00", end="09:00")
        assert window.contains(7 * 60)
        assert window.contains(9 * 60)
        assert not window.contains(9 * 60 + 1)


# ------------------------------------------------------------------
# History
# ------------------------------------------------------------------


def test_history_entry_from_sample() -> None:
    sample = TelemetrySample(
        vehicle_id="v1",
        recorded_at=_dt(),
        location=Coordinate.of(-1.29, 36.82),
        current_speed=30,
        average_speed=25,
        max_speed=40,
        heading=-10,
        events=("trip_start",),
    )
    trigger = Trigger.model_validate(
        {"id": "t1", "vehicle": "v1", "type": "event_based", "conditions": {"events": {"tripStart": True}}}
    )

    baseline = HistoryEntry.from_sample(sample, timestamp=_dt())
    tagged = HistoryEntry.from_sample(sample, timestamp=_dt(), trigger=trigger)

    assert baseline.is_baseline
    assert baseline.speed.max == 40
    assert baseline.heading == 350
    assert baseline.context.events == ("trip_start",)
    assert tagged.trigger_id == "t1"
    assert tagged.trigger_type == TriggerType.EVENT_BASED
    assert baseline.id != tagged.id
