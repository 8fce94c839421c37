"""Custom exception hierarchy for fleetsim."""

from __future__ import annotations


class FleetSimError(Exception):
    """Base exception for all fleetsim errors."""


class FleetSimConfigError(FleetSimError):
    """Invalid or missing configuration."""


class StorageError(FleetSimError):
    """Storage collaborator failure."""

    def __init__(self, message: str, *, operation: str = "") -> None:
        self.operation = operation
        super().__init__(message)


class StorageUnavailableError(StorageError):
    """Storage could not be reached.

    The engine skips the whole pass when this is raised at the start of a
    tick and retries on the next scheduled tick.
    """


class RouteDataError(FleetSimError):
    """Route record cannot be followed (too few stops, bad coordinates)."""

    def __init__(self, message: str, *, route_id: str = "") -> None:
        self.route_id = route_id
        super().__init__(message)


class EngineNotInitializedError(FleetSimError):
    """Engine operation requires :meth:`SimulationEngine.initialize` first."""
