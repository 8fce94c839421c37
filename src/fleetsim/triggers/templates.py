"""Default trigger set provisioned for newly announced vehicles."""

from __future__ import annotations

import re
from typing import Any

from fleetsim.models.trigger import Trigger
from fleetsim.models.vehicle import Route, Vehicle

STOP_GEOFENCE_RADIUS_M = 200.0

DEFAULT_TRIGGER_TEMPLATES: tuple[dict[str, Any], ...] = (
    {
        "name": "Speed Alert - High Speed",
        "type": "speed_based",
        "conditions": {"speedBased": {"thresholds": {"high": 60, "low": 5}, "change": {"percentage": 20}}},
        "metadata": {
            "description": "Triggers when vehicle speed exceeds 60 km/h",
            "priority": "high",
            "tags": ["speed", "safety"],
        },
    },
    {
        "name": "Geofence Alert - CBD Entry",
        "type": "location_based",
        "conditions": {
            "locationBased": {
                "geofence": {"center": {"latitude": -1.2921, "longitude": 36.8219}, "radius": 1000},
                "distance": {"threshold": 500},
            }
        },
        "metadata": {
            "description": "Triggers when vehicle enters Nairobi CBD area",
            "priority": "medium",
            "tags": ["location", "geofence"],
        },
    },
    {
        "name": "Time-based Update",
        "type": "time_based",
        "conditions": {
            "timeBased": {
                "timeWindows": {
                    "peakHours": {"start": "07:00", "end": "09:00", "updateInterval": 2},
                    "offPeak": {"start": "10:00", "end": "16:00", "updateInterval": 5},
                }
            }
        },
        "metadata": {
            "description": "Regular location updates during peak and off-peak hours",
            "priority": "low",
            "tags": ["time", "regular"],
        },
    },
    {
        "name": "Traffic Alert",
        "type": "condition_based",
        "conditions": {"conditionBased": {"traffic": {"heavy": True, "light": False}}},
        "metadata": {
            "description": "Triggers during heavy traffic conditions",
            "priority": "medium",
            "tags": ["traffic", "conditions"],
        },
    },
    {
        "name": "Route Deviation Alert",
        "type": "route_deviation",
        "conditions": {
            "routeDeviation": {
                "distance": {"fromRoute": 200, "timeWindow": 300},
                "allowedDeviation": {"distance": 100, "duration": 60},
            }
        },
        "metadata": {
            "description": "Triggers when vehicle deviates more than 200m from route",
            "priority": "high",
            "tags": ["route", "deviation"],
        },
    },
    {
        "name": "Performance Alert - Low Fuel Efficiency",
        "type": "performance_based",
        "conditions": {
            "performanceBased": {
                "metrics": {"fuelEfficiency": True, "idleTime": True},
                "thresholds": {"fuelEfficiency": 8.0, "idleTime": 300},
            }
        },
        "metadata": {
            "description": "Triggers on fuel efficiency or idle time thresholds",
            "priority": "medium",
            "tags": ["performance", "fuel"],
        },
    },
    {
        "name": "Event Alert - Trip Start",
        "type": "event_based",
        "conditions": {"eventBased": {"events": {"tripStart": True, "stopArrival": True, "statusChange": True}}},
        "metadata": {
            "description": "Triggers on trip start, stop arrival, and status change events",
            "priority": "low",
            "tags": ["events", "trip"],
        },
    },
)


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def build_default_triggers(vehicle: Vehicle, route: Route | None = None) -> list[Trigger]:
    """Default triggers for *vehicle*, plus a stop-arrival geofence per stop of *route*.

    Ids are derived from the vehicle id and trigger name, so provisioning the
    same vehicle twice yields the same ids.
    """
    triggers: list[Trigger] = []
    for template in DEFAULT_TRIGGER_TEMPLATES:
        payload = dict(template)
        payload["id"] = f"{vehicle.id}-{_slug(template['name'])}"
        payload["vehicle"] = vehicle.id
        triggers.append(Trigger.model_validate(payload))

    if route is None:
        return triggers

    for stop in route.stops:
        label = stop.name or f"stop {stop.sequence}"
        triggers.append(
            Trigger.model_validate(
                {
                    "id": f"{vehicle.id}-stop-arrival-{route.id}-{stop.sequence}",
                    "vehicle": vehicle.id,
                    "name": f"Stop Arrival - {label}",
                    "type": "location_based",
                    "conditions": {
                        "locationBased": {
                            "geofence": {
                                "center": stop.coordinates.model_dump(),
                                "radius": STOP_GEOFENCE_RADIUS_M,
                            }
                        }
                    },
                    "metadata": {
                        "description": f"Triggers when vehicle arrives at {label}",
                        "priority": "medium",
                        "tags": ["stop", "arrival", "route"],
                    },
                }
            )
        )
    return triggers
