"""History recorder and vehicle state updater.

Turns one tick's sample and firings for a vehicle into a single
:class:`~fleetsim.storage.base.TickCommit`:

* a baseline history entry, plus one tagged entry per fired trigger,
* the updated vehicle snapshot with its odometer and passenger counters,
* the fired triggers with ``last_triggered`` equal to their entry's timestamp.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta

from fleetsim._constants import ASSUMED_TRIP_KM, PASSENGERS_PER_STOP, TRIP_INCREMENT
from fleetsim.config import SimulationConfig
from fleetsim.models.history import HistoryEntry
from fleetsim.models.telemetry import TelemetrySample
from fleetsim.models.trigger import IntegrationBasedConditions, Trigger
from fleetsim.models.vehicle import ContextData, CurrentLocation, Vehicle
from fleetsim.storage.base import TickCommit
from fleetsim.triggers.evaluator import Firing

_logger = logging.getLogger(__name__)

_TIMESTAMP_STEP = timedelta(microseconds=1)


class HistoryRecorder:
    """Builds per-vehicle tick commits.

    Keeps the last timestamp written for each vehicle so that history entries
    stay strictly increasing even when the clock stalls or steps backwards.
    """

    def __init__(self, config: SimulationConfig, *, rng: random.Random | None = None) -> None:
        self._config = config
        self._rng = rng or random.Random(config.seed)
        self._last_timestamps: dict[str, datetime] = {}

    def last_timestamp(self, vehicle_id: str) -> datetime | None:
        return self._last_timestamps.get(vehicle_id)

    def next_timestamp(self, vehicle_id: str, now: datetime) -> datetime:
        """Return *now*, or just after the previous timestamp if *now* is not later."""
        last = self._last_timestamps.get(vehicle_id)
        timestamp = now if last is None or now > last else last + _TIMESTAMP_STEP
        self._last_timestamps[vehicle_id] = timestamp
        return timestamp

    def retain(self, vehicle_ids: Iterable[str]) -> None:
        """Drop timestamps for vehicles no longer in the working set."""
        keep = set(vehicle_ids)
        for vehicle_id in list(self._last_timestamps):
            if vehicle_id not in keep:
                del self._last_timestamps[vehicle_id]

    def build_commit(
        self,
        vehicle: Vehicle,
        sample: TelemetrySample,
        firings: Sequence[Firing],
        *,
        now: datetime,
    ) -> TickCommit:
        """Fold *sample* and *firings* into one commit for *vehicle*.

        The vehicle's stored ``updated_at`` also bounds the next timestamp, so
        history written by an earlier run is never overtaken.
        """
        if vehicle.current_location is not None:
            stored_at = vehicle.current_location.updated_at
            last = self._last_timestamps.get(vehicle.id)
            if last is None or last < stored_at:
                self._last_timestamps[vehicle.id] = stored_at

        baseline_at = self.next_timestamp(vehicle.id, now)
        entries = [HistoryEntry.from_sample(sample, timestamp=baseline_at)]
        fired: list[Trigger] = []
        for firing in firings:
            entry_at = self.next_timestamp(vehicle.id, now)
            trigger = firing.trigger.model_copy(update={"last_triggered": entry_at})
            entries.append(HistoryEntry.from_sample(sample, timestamp=entry_at, trigger=trigger))
            fired.append(trigger)

        snapshot = self._update_vehicle(vehicle, sample, fired, updated_at=entries[-1].timestamp)
        _logger.debug(
            "Vehicle %s: %d history entries, %d triggers fired",
            vehicle.id,
            len(entries),
            len(fired),
        )
        return TickCommit(vehicle=snapshot, entries=tuple(entries), fired_triggers=tuple(fired))

    def _update_vehicle(
        self,
        vehicle: Vehicle,
        sample: TelemetrySample,
        fired: Sequence[Trigger],
        *,
        updated_at: datetime,
    ) -> Vehicle:
        last_updates = dict(sample.last_updates)
        for trigger in fired:
            if isinstance(trigger.conditions, IntegrationBasedConditions):
                for key in trigger.conditions.enabled_keys():
                    last_updates[key] = updated_at

        passengers = vehicle.total_passengers_ferried
        trips = vehicle.total_trips
        if "stop_arrival" in sample.events:
            passengers += self._rng.randint(*PASSENGERS_PER_STOP)
            trips = round(trips + TRIP_INCREMENT, 1)

        return vehicle.model_copy(
            update={
                "current_location": CurrentLocation(
                    latitude=sample.location.latitude,
                    longitude=sample.location.longitude,
                    updated_at=updated_at,
                ),
                "current_speed": sample.current_speed,
                "average_speed": sample.average_speed,
                "mileage": round(vehicle.mileage + self._travelled_km(vehicle, sample), 3),
                "total_passengers_ferried": passengers,
                "total_trips": trips,
                "estimated_arrival_time": self.estimated_arrival_time(sample.current_speed, sample.recorded_at),
                "context_data": ContextData(
                    weather=sample.weather,
                    traffic=sample.traffic,
                    performance=sample.performance,
                    route=sample.route,
                    device_health=sample.device_health,
                    events=sample.events,
                    heading=sample.heading,
                    source=sample.source,
                    last_updates=last_updates,
                ),
            }
        )

    def _travelled_km(self, vehicle: Vehicle, sample: TelemetrySample) -> float:
        """Distance covered since the vehicle's last snapshot.

        Route-following samples use route progress: the difference from the
        previous progress on the same route, or the whole distance so far when
        the cycle has restarted. Everything else integrates speed over one tick.
        """
        progress = sample.route.progress
        previous = vehicle.context_data.route
        if progress is not None and previous.progress is not None and previous.route_id == sample.route.route_id:
            covered = progress.distance_traveled - previous.progress.distance_traveled
            return covered if covered >= 0 else progress.distance_traveled
        return sample.current_speed * self._config.tick_interval / 3600.0

    def estimated_arrival_time(self, speed_kmh: float, at: datetime) -> str | None:
        """Local ``HH:MM`` at which a trip of ``ASSUMED_TRIP_KM`` ends at *speed_kmh*."""
        if speed_kmh <= 0:
            return None
        minutes = math.floor(ASSUMED_TRIP_KM / (speed_kmh / 60.0))
        arrival = at.astimezone(self._config.tzinfo) + timedelta(minutes=minutes)
        return arrival.strftime("%H:%M")
