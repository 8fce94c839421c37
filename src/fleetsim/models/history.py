"""History entry model."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import Field

from fleetsim.models._base import FleetBaseModel, UtcDatetime
from fleetsim.models.geo import Coordinate
from fleetsim.models.telemetry import Performance, RouteContext, TelemetrySample, Traffic, Weather
from fleetsim.models.trigger import Trigger, TriggerType


class SpeedSummary(FleetBaseModel):
    current: float = 0.0
    average: float = 0.0
    max: float = 0.0


class EnvironmentConditions(FleetBaseModel):
    weather: Weather = Field(default_factory=Weather)
    traffic: Traffic = Field(default_factory=Traffic)


class HistoryContext(FleetBaseModel):
    trigger_type: TriggerType | None = None
    trigger_id: str | None = None
    events: tuple[str, ...] = ()
    conditions: EnvironmentConditions = Field(default_factory=EnvironmentConditions)
    performance: Performance = Field(default_factory=Performance)
    route: RouteContext = Field(default_factory=RouteContext)


class HistoryMetadata(FleetBaseModel):
    source: str = "simulator"
    accuracy: float | None = None
    battery_level: float | None = None
    signal_strength: float | None = None


def _new_entry_id() -> str:
    return uuid.uuid4().hex


class HistoryEntry(FleetBaseModel):
    """Immutable record of one vehicle's telemetry at one tick.

    Baseline entries have no trigger reference; entries caused by a trigger
    carry its id and type in ``context``.
    """

    id: str = Field(default_factory=_new_entry_id)
    vehicle_id: str
    timestamp: UtcDatetime
    location: Coordinate
    speed: SpeedSummary = Field(default_factory=SpeedSummary)
    heading: float = 0.0
    context: HistoryContext = Field(default_factory=HistoryContext)
    metadata: HistoryMetadata = Field(default_factory=HistoryMetadata)

    @property
    def trigger_id(self) -> str | None:
        return self.context.trigger_id

    @property
    def trigger_type(self) -> TriggerType | None:
        return self.context.trigger_type

    @property
    def is_baseline(self) -> bool:
        return self.context.trigger_id is None

    @classmethod
    def from_sample(
        cls,
        sample: TelemetrySample,
        *,
        timestamp: datetime,
        trigger: Trigger | None = None,
    ) -> HistoryEntry:
        """Fold *sample* into an entry, tagged with *trigger* when given."""
        return cls(
            vehicle_id=sample.vehicle_id,
            timestamp=timestamp,
            location=sample.location,
            speed=SpeedSummary(
                current=sample.current_speed,
                average=sample.average_speed,
                max=sample.max_speed,
            ),
            heading=sample.heading,
            context=HistoryContext(
                trigger_type=trigger.type if trigger is not None else None,
                trigger_id=trigger.id if trigger is not None else None,
                events=sample.events,
                conditions=EnvironmentConditions(weather=sample.weather, traffic=sample.traffic),
                performance=sample.performance,
                route=sample.route,
            ),
            metadata=HistoryMetadata(
                source=sample.source,
                accuracy=sample.device_health.accuracy,
                battery_level=sample.device_health.battery_level,
                signal_strength=sample.device_health.signal_strength,
            ),
        )
