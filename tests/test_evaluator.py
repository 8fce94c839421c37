from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo

import pytest

from fleetsim.models import Coordinate, Route, TelemetrySample, Trigger, TriggerType, Vehicle
from fleetsim.triggers import (
    DEFAULT_TRIGGER_TEMPLATES,
    TriggerEvaluator,
    TriggerState,
    build_default_triggers,
    trigger_state,
)
from fleetsim.triggers import evaluator as evaluator_module

# 08:30 in Nairobi.
NOW = datetime(2026, 3, 2, 5, 30, tzinfo=UTC)
VEHICLE = Vehicle(id="v1", status="in_use")


def _sample(speed: float = 30.0, at: datetime = NOW) -> TelemetrySample:
    return TelemetrySample(
        vehicle_id="v1",
        recorded_at=at,
        location=Coordinate.of(-1.2921, 36.8219),
        current_speed=speed,
        average_speed=speed,
        max_speed=speed,
    )


def _speed_trigger(trigger_id: str = "t-speed", **extra: Any) -> Trigger:
    payload = {
        "id": trigger_id,
        "vehicle": "v1",
        "type": "speed_based",
        "conditions": {"speedBased": {"thresholds": {"high": 60}}},
    }
    payload.update(extra)
    return Trigger.model_validate(payload)


def _evaluator() -> TriggerEvaluator:
    return TriggerEvaluator(tz=ZoneInfo("Africa/Nairobi"))


def test_inclusive_threshold_fires_and_stamps_trigger() -> None:
    result = _evaluator().evaluate(VEHICLE, [_speed_trigger()], _sample(60), now=NOW)

    assert [firing.trigger.id for firing in result.firings] == ["t-speed"]
    assert result.firings[0].trigger.last_triggered == NOW
    assert result.firings[0].fired_at == NOW
    assert result.evaluated == 1


def test_below_threshold_does_not_fire() -> None:
    result = _evaluator().evaluate(VEHICLE, [_speed_trigger()], _sample(59), now=NOW)
    assert result.firings == []
    assert result.evaluated == 1


def test_inactive_and_foreign_triggers_ignored() -> None:
    triggers = [
        _speed_trigger("t-off", isActive=False),
        _speed_trigger("t-other", vehicle="v2"),
    ]
    result = _evaluator().evaluate(VEHICLE, triggers, _sample(100), now=NOW)
    assert result.firings == []
    assert result.evaluated == 0


def test_several_triggers_fire_in_one_tick() -> None:
    triggers = [
        _speed_trigger("t-a"),
        _speed_trigger("t-b"),
        Trigger.model_validate(
            {"id": "t-c", "vehicle": "v1", "type": "speed_based", "conditions": {"thresholds": {"low": 5}}}
        ),
    ]
    result = _evaluator().evaluate(VEHICLE, triggers, _sample(80), now=NOW)
    assert [trigger.id for trigger in result.fired_triggers] == ["t-a", "t-b"]


class TestCooldown:
    def test_state_machine(self) -> None:
        trigger = _speed_trigger(cooldown_seconds=300).fired_at(NOW)
        assert trigger_state(trigger, NOW + timedelta(seconds=60)) == TriggerState.FIRED
        assert trigger_state(trigger, NOW + timedelta(seconds=300)) == TriggerState.ARMED

    def test_no_cooldown_rearms_immediately(self) -> None:
        trigger = _speed_trigger().fired_at(NOW)
        assert trigger_state(trigger, NOW) == TriggerState.ARMED

    def test_default_cooldown_applies(self) -> None:
        trigger = _speed_trigger().fired_at(NOW)
        assert trigger_state(trigger, NOW + timedelta(seconds=10), default_cooldown=30) == TriggerState.FIRED

    def test_cooling_trigger_skipped(self) -> None:
        trigger = _speed_trigger(cooldown_seconds=300).fired_at(NOW)
        result = _evaluator().evaluate(VEHICLE, [trigger], _sample(100), now=NOW + timedelta(seconds=30))
        assert result.firings == []
        assert result.skipped_cooldown == 1

    def test_time_based_interval(self) -> None:
        trigger = Trigger.model_validate(
            {
                "id": "t-time",
                "vehicle": "v1",
                "type": "time_based",
                "conditions": {
                    "timeBased": {"timeWindows": {"peakHours": {"start": "07:00", "end": "09:00", "updateInterval": 2}}}
                },
            }
        )
        evaluator = _evaluator()

        first = evaluator.evaluate(VEHICLE, [trigger], _sample(), now=NOW)
        assert len(first.firings) == 1
        fired = first.firings[0].trigger

        one_minute = NOW + timedelta(minutes=1)
        assert evaluator.evaluate(VEHICLE, [fired], _sample(at=one_minute), now=one_minute).firings == []

        two_minutes = NOW + timedelta(minutes=2)
        assert len(evaluator.evaluate(VEHICLE, [fired], _sample(at=two_minutes), now=two_minutes).firings) == 1


def test_predicate_error_counts_as_not_fired(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
    real = evaluator_module.evaluate_trigger

    def _flaky(trigger: Trigger, ctx: Any) -> bool:
        if trigger.id == "t-bad":
            raise RuntimeError("boom")
        return real(trigger, ctx)

    monkeypatch.setattr(evaluator_module, "evaluate_trigger", _flaky)

    with caplog.at_level("WARNING", logger="fleetsim.triggers.evaluator"):
        triggers = [_speed_trigger("t-bad"), _speed_trigger("t-good")]
        result = _evaluator().evaluate(VEHICLE, triggers, _sample(70), now=NOW)

    assert result.errors == 1
    assert [trigger.id for trigger in result.fired_triggers] == ["t-good"]
    assert "t-bad" in caplog.text


# ------------------------------------------------------------------
# Default provisioning
# ------------------------------------------------------------------


class TestDefaultTriggers:
    def test_templates_all_parse(self) -> None:
        triggers = build_default_triggers(VEHICLE)

        assert len(triggers) == len(DEFAULT_TRIGGER_TEMPLATES)
        assert all(trigger.conditions is not None for trigger in triggers)
        assert all(trigger.vehicle == "v1" for trigger in triggers)
        assert {trigger.type for trigger in triggers} == {
            TriggerType.SPEED_BASED,
            TriggerType.LOCATION_BASED,
            TriggerType.TIME_BASED,
            TriggerType.CONDITION_BASED,
            TriggerType.ROUTE_DEVIATION,
            TriggerType.PERFORMANCE_BASED,
            TriggerType.EVENT_BASED,
        }

    def test_ids_are_stable(self) -> None:
        first = [trigger.id for trigger in build_default_triggers(VEHICLE)]
        second = [trigger.id for trigger in build_default_triggers(VEHICLE)]
        assert first == second
        assert "v1-speed-alert-high-speed" in first
        assert len(set(first)) == len(first)

    def test_stop_geofences_added_for_route(self) -> None:
        route = Route.model_validate(
            {
                "id": "r1",
                "stops": [
                    {"sequence": 1, "name": "Kencom", "coordinates": {"lat": -1.2864, "lng": 36.8254}},
                    {"sequence": 2, "coordinates": {"lat": -1.3000, "lng": 36.8300}},
                ],
            }
        )
        triggers = build_default_triggers(VEHICLE, route)
        stops = triggers[len(DEFAULT_TRIGGER_TEMPLATES) :]

        assert [trigger.id for trigger in stops] == ["v1-stop-arrival-r1-1", "v1-stop-arrival-r1-2"]
        assert stops[0].name == "Stop Arrival - Kencom"
        geofence = stops[0].conditions.geofence  # type: ignore[union-attr]
        assert geofence is not None
        assert geofence.radius == 200.0
        assert geofence.center == route.stops[0].coordinates
