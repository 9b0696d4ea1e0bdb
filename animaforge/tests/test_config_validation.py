"""Tests for configuration validation."""

import logging
from types import SimpleNamespace

import pytest

from animaforge.core.config import Settings, validate_config


def make_settings(**overrides):
    defaults = dict(
        ENV="development",
        CONFIG_STRICT=False,
        DATABASE_URL="sqlite:///animaforge.db",
        FINAL_TIER="SSS",
        DEFAULT_COOLDOWN_HOURS=24,
        DEFAULT_BASE_INFLATION=0.25,
    )
    defaults.update(overrides)
    return SimpleNamespace(**defaults)


def test_valid_config_passes_quietly(caplog):
    with caplog.at_level(logging.WARNING, logger="animaforge"):
        assert validate_config(strict=True, settings_obj=make_settings())
    assert not caplog.records


def test_missing_database_url_only_warns(caplog):
    with caplog.at_level(logging.WARNING, logger="animaforge"):
        validate_config(strict=False, settings_obj=make_settings(DATABASE_URL=None))
    assert any("DATABASE_URL" in r.getMessage() for r in caplog.records)


@pytest.mark.parametrize(
    "overrides",
    [
        {"DATABASE_URL": None},
        {"FINAL_TIER": "SS"},
        {"DEFAULT_COOLDOWN_HOURS": 0},
        {"DEFAULT_BASE_INFLATION": -0.5},
    ],
)
def test_strict_mode_raises(overrides):
    with pytest.raises(RuntimeError):
        validate_config(strict=True, settings_obj=make_settings(**overrides))


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("FINAL_TIER", "S")
    monkeypatch.setenv("DEFAULT_BASE_INFLATION", "0.5")
    cfg = Settings()
    assert cfg.FINAL_TIER == "S"
    assert cfg.DEFAULT_BASE_INFLATION == 0.5
