from __future__ import annotations

import pytest

from fleetsim.config import SimulationConfig
from fleetsim.exceptions import FleetSimConfigError


def test_defaults() -> None:
    config = SimulationConfig()
    assert config.tick_interval == 30.0
    assert config.refresh_interval == 300.0
    assert config.compression_factor == pytest.approx(10.0)
    assert config.tzinfo.key == "Africa/Nairobi"
    assert config.provision_default_triggers is True


@pytest.mark.parametrize(
    "kwargs",
    [
        {"tick_interval": 0},
        {"refresh_interval": -1},
        {"cycle_seconds": 0},
        {"max_concurrency": 0},
        {"jitter_degrees": -0.1},
        {"default_trigger_cooldown": -5},
        {"timezone": "Mars/Olympus_Mons"},
    ],
)
def test_invalid_values_rejected(kwargs: dict[str, object]) -> None:
    with pytest.raises(FleetSimConfigError):
        SimulationConfig(**kwargs)  # type: ignore[arg-type]


def test_from_env_reads_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FLEETSIM_TICK_INTERVAL", "5")
    monkeypatch.setenv("FLEETSIM_MAX_CONCURRENCY", "2")
    monkeypatch.setenv("FLEETSIM_TIMEZONE", " UTC ")
    monkeypatch.setenv("FLEETSIM_PROVISION_DEFAULT_TRIGGERS", "no")

    config = SimulationConfig.from_env()

    assert config.tick_interval == 5.0
    assert config.max_concurrency == 2
    assert config.timezone == "UTC"
    assert config.provision_default_triggers is False


def test_from_env_overrides_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FLEETSIM_TICK_INTERVAL", "5")
    config = SimulationConfig.from_env(tick_interval=7.5)
    assert config.tick_interval == 7.5


def test_from_env_rejects_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FLEETSIM_CYCLE_SECONDS", "two minutes")
    with pytest.raises(FleetSimConfigError, match="FLEETSIM_CYCLE_SECONDS"):
        SimulationConfig.from_env()


def test_unparseable_bool_keeps_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FLEETSIM_PROVISION_DEFAULT_TRIGGERS", "maybe")
    assert SimulationConfig.from_env().provision_default_triggers is True
