"""Engine configuration for fleetsim."""

from __future__ import annotations

import dataclasses
import os
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fleetsim._constants import (
    DEFAULT_ASSUMED_TRAVERSAL_S,
    DEFAULT_CYCLE_S,
    DEFAULT_HEALTH_CHECK_INTERVAL_S,
    DEFAULT_JITTER_DEGREES,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_REFRESH_INTERVAL_S,
    DEFAULT_SCENARIO_SPREAD_DEGREES,
    DEFAULT_TICK_INTERVAL_S,
    DEFAULT_TIMEZONE,
)
from fleetsim.exceptions import FleetSimConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class SimulationConfig:
    """Engine configuration.

    Parameters
    ----------
    tick_interval : float
        Seconds between simulation passes.
    refresh_interval : float
        Seconds between working-set reloads (vehicles and routes).
    health_check_interval : float
        Seconds between health checks while running. ``0`` disables them.
    cycle_seconds : float
        Length of the repeating wall-clock simulation cycle.
    assumed_traversal_seconds : float
        Real-world traversal time the cycle stands in for. Together with
        ``cycle_seconds`` this gives the time-compression factor.
    jitter_degrees : float
        Amplitude of the GPS noise added to route positions. ``0`` disables it.
    scenario_spread_degrees : float
        Per-vehicle location spread applied to canned scenario snapshots.
    max_concurrency : int
        Upper bound on vehicles processed at the same time within a pass.
    default_trigger_cooldown : float
        Cooldown in seconds for triggers without their own ``cooldown_seconds``.
    timezone : str
        IANA zone used for time-window triggers.
    provision_default_triggers : bool
        Create the default trigger set when a new vehicle is announced.
    seed : int or None
        Seed for the simulator's random generator.
    """

    tick_interval: float = DEFAULT_TICK_INTERVAL_S
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL_S
    health_check_interval: float = DEFAULT_HEALTH_CHECK_INTERVAL_S
    cycle_seconds: float = DEFAULT_CYCLE_S
    assumed_traversal_seconds: float = DEFAULT_ASSUMED_TRAVERSAL_S
    jitter_degrees: float = DEFAULT_JITTER_DEGREES
    scenario_spread_degrees: float = DEFAULT_SCENARIO_SPREAD_DEGREES
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    default_trigger_cooldown: float = 0.0
    timezone: str = DEFAULT_TIMEZONE
    provision_default_triggers: bool = True
    seed: int | None = None

    def __post_init__(self) -> None:
        if self.tick_interval <= 0:
            raise FleetSimConfigError(f"tick_interval must be positive, got {self.tick_interval}")
        if self.refresh_interval <= 0:
            raise FleetSimConfigError(f"refresh_interval must be positive, got {self.refresh_interval}")
        if self.health_check_interval < 0:
            raise FleetSimConfigError("health_check_interval must not be negative")
        if self.cycle_seconds <= 0:
            raise FleetSimConfigError(f"cycle_seconds must be positive, got {self.cycle_seconds}")
        if self.assumed_traversal_seconds <= 0:
            raise FleetSimConfigError("assumed_traversal_seconds must be positive")
        if self.jitter_degrees < 0 or self.scenario_spread_degrees < 0:
            raise FleetSimConfigError("jitter amplitudes must not be negative")
        if self.max_concurrency < 1:
            raise FleetSimConfigError(f"max_concurrency must be at least 1, got {self.max_concurrency}")
        if self.default_trigger_cooldown < 0:
            raise FleetSimConfigError("default_trigger_cooldown must not be negative")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise FleetSimConfigError(f"unknown timezone {self.timezone!r}") from exc

    @property
    def compression_factor(self) -> float:
        """Simulated seconds represented by one wall-clock second."""
        return self.assumed_traversal_seconds / self.cycle_seconds

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def from_env(cls, **overrides: Any) -> SimulationConfig:
        """Create configuration from ``FLEETSIM_*`` environment variables.

        Explicit keyword arguments override environment values.

        Raises
        ------
        FleetSimConfigError
            When a variable cannot be parsed or a value is out of range.
        """
        env = os.environ

        _ENV_FLOAT_MAP = {
            "FLEETSIM_TICK_INTERVAL": "tick_interval",
            "FLEETSIM_REFRESH_INTERVAL": "refresh_interval",
            "FLEETSIM_HEALTH_CHECK_INTERVAL": "health_check_interval",
            "FLEETSIM_CYCLE_SECONDS": "cycle_seconds",
            "FLEETSIM_ASSUMED_TRAVERSAL_SECONDS": "assumed_traversal_seconds",
            "FLEETSIM_JITTER_DEGREES": "jitter_degrees",
            "FLEETSIM_SCENARIO_SPREAD_DEGREES": "scenario_spread_degrees",
            "FLEETSIM_DEFAULT_TRIGGER_COOLDOWN": "default_trigger_cooldown",
        }
        _ENV_INT_MAP = {
            "FLEETSIM_MAX_CONCURRENCY": "max_concurrency",
            "FLEETSIM_SEED": "seed",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                try:
                    config_kwargs[field_name] = float(val)
                except ValueError as exc:
                    raise FleetSimConfigError(f"{env_key} must be a number, got {val!r}") from exc

        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                try:
                    config_kwargs[field_name] = int(val)
                except ValueError as exc:
                    raise FleetSimConfigError(f"{env_key} must be an integer, got {val!r}") from exc

        tz_env = env.get("FLEETSIM_TIMEZONE")
        if tz_env is not None and "timezone" not in overrides:
            config_kwargs["timezone"] = tz_env.strip()

        if "provision_default_triggers" not in overrides:
            config_kwargs["provision_default_triggers"] = _env_bool(
                env.get("FLEETSIM_PROVISION_DEFAULT_TRIGGERS"),
                True,
            )

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
