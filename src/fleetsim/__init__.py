"""fleetsim - telemetry simulation and trigger evaluation for vehicle fleets."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fleetsim")
except PackageNotFoundError:
    __version__ = "0+local"
from fleetsim.config import SimulationConfig
from fleetsim.engine import EngineStatus, HealthReport, PassReport, SimulationEngine, WorkingSet
from fleetsim.exceptions import (
    EngineNotInitializedError,
    FleetSimConfigError,
    FleetSimError,
    RouteDataError,
    StorageError,
    StorageUnavailableError,
)
from fleetsim.models import (
    Coordinate,
    HistoryEntry,
    Route,
    Stop,
    TelemetrySample,
    Trigger,
    TriggerType,
    Vehicle,
    VehicleStatus,
)
from fleetsim.recorder import HistoryRecorder
from fleetsim.storage import InMemoryStorage, Storage, TickCommit

__all__ = [
    "Coordinate",
    "EngineNotInitializedError",
    "EngineStatus",
    "FleetSimConfigError",
    "FleetSimError",
    "HealthReport",
    "HistoryEntry",
    "HistoryRecorder",
    "InMemoryStorage",
    "PassReport",
    "Route",
    "RouteDataError",
    "SimulationConfig",
    "SimulationEngine",
    "Stop",
    "Storage",
    "TelemetrySample",
    "TickCommit",
    "Trigger",
    "TriggerType",
    "Vehicle",
    "VehicleStatus",
    "WorkingSet",
    "__version__",
]
