"""Trigger evaluation.

Each (vehicle, trigger) pair is a two-state machine:

* ``ARMED``: eligible to fire.
* ``FIRED``: fired within its cooldown; skipped until the cooldown expires.

A firing sets ``last_triggered`` to the tick time. Several triggers of one
vehicle may fire in the same tick.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta, tzinfo

from fleetsim.models._base import FleetEnum
from fleetsim.models.telemetry import TelemetrySample
from fleetsim.models.trigger import Trigger
from fleetsim.models.vehicle import Vehicle
from fleetsim.triggers.predicates import PredicateContext, evaluate_trigger

_logger = logging.getLogger(__name__)


class TriggerState(FleetEnum):
    UNKNOWN = "unknown"
    ARMED = "armed"
    FIRED = "fired"


def trigger_state(trigger: Trigger, now: datetime, *, default_cooldown: float = 0.0) -> TriggerState:
    """State of *trigger* at *now*."""
    if trigger.last_triggered is None:
        return TriggerState.ARMED
    cooldown = trigger.cooldown_seconds if trigger.cooldown_seconds is not None else default_cooldown
    if cooldown <= 0:
        return TriggerState.ARMED
    if now - trigger.last_triggered < timedelta(seconds=cooldown):
        return TriggerState.FIRED
    return TriggerState.ARMED


@dataclass(frozen=True, slots=True)
class Firing:
    """A trigger that fired, with ``last_triggered`` already advanced."""

    trigger: Trigger
    fired_at: datetime


@dataclass(slots=True)
class EvaluationResult:
    vehicle_id: str
    firings: list[Firing] = field(default_factory=list)
    evaluated: int = 0
    skipped_cooldown: int = 0
    errors: int = 0

    @property
    def fired_triggers(self) -> list[Trigger]:
        return [firing.trigger for firing in self.firings]


class TriggerEvaluator:
    """Runs a vehicle's active triggers against one telemetry sample."""

    def __init__(self, *, default_cooldown: float = 0.0, tz: tzinfo = UTC) -> None:
        self._default_cooldown = default_cooldown
        self._tz = tz

    def evaluate(
        self,
        vehicle: Vehicle,
        triggers: Iterable[Trigger],
        sample: TelemetrySample,
        *,
        now: datetime,
        prior: TelemetrySample | None = None,
    ) -> EvaluationResult:
        """Evaluate *triggers* for *vehicle*.

        Inactive triggers and triggers owned by another vehicle are ignored.
        A predicate that raises counts as "does not fire".
        """
        result = EvaluationResult(vehicle_id=vehicle.id)
        for trigger in triggers:
            if not trigger.is_active or trigger.vehicle != vehicle.id:
                continue
            if trigger_state(trigger, now, default_cooldown=self._default_cooldown) == TriggerState.FIRED:
                result.skipped_cooldown += 1
                continue

            ctx = PredicateContext(
                sample=sample,
                now=now,
                prior=prior,
                vehicle=vehicle,
                last_triggered=trigger.last_triggered,
                tz=self._tz,
            )
            result.evaluated += 1
            try:
                fired = evaluate_trigger(trigger, ctx)
            except Exception:
                result.errors += 1
                _logger.warning(
                    "Predicate for trigger %s (%s) on vehicle %s raised; treating as not fired",
                    trigger.id,
                    trigger.type.value,
                    vehicle.id,
                    exc_info=True,
                )
                continue

            if not fired:
                continue
            _logger.debug("Trigger %s (%s) fired for vehicle %s", trigger.id, trigger.type.value, vehicle.id)
            result.firings.append(Firing(trigger=trigger.fired_at(now), fired_at=now))
        return result
