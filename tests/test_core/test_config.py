"""Tests for configuration loading."""

import pytest

from location_dealer.core.config import (
    DEFAULT_IP_LOOKUP_URL,
    get_default_accuracy,
    get_default_scope,
    get_ip_settings,
    load_config,
)
from location_dealer.core.models import (
    BEST,
    HUNDRED_METERS,
    KILOMETER,
    THREE_KILOMETERS,
    AuthorizationScope,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("LOCATION_DEALER_ACCURACY", "LOCATION_DEALER_SCOPE", "LOCATION_DEALER_IP_URL"):
        monkeypatch.delenv(name, raising=False)


def test_load_config_from_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text('accuracy = "kilometer"\n\n[ip]\ntimeout = 2.5\n')
    config = load_config(path)
    assert config["accuracy"] == "kilometer"
    assert config["ip"]["timeout"] == 2.5


def test_load_config_missing_file(tmp_path):
    assert load_config(tmp_path / "nope.toml") == {}


def test_default_accuracy_without_config():
    assert get_default_accuracy({}) == THREE_KILOMETERS


def test_default_accuracy_from_config():
    assert get_default_accuracy({"accuracy": "hundred_meters"}) == HUNDRED_METERS


def test_env_overrides_config(monkeypatch):
    monkeypatch.setenv("LOCATION_DEALER_ACCURACY", "best")
    assert get_default_accuracy({"accuracy": "kilometer"}) == BEST


def test_invalid_accuracy_name(monkeypatch):
    monkeypatch.setenv("LOCATION_DEALER_ACCURACY", "everywhere")
    with pytest.raises(ValueError):
        get_default_accuracy({})


def test_default_scope(monkeypatch):
    assert get_default_scope({}) == AuthorizationScope.WHEN_IN_USE
    assert get_default_scope({"scope": "always"}) == AuthorizationScope.ALWAYS
    monkeypatch.setenv("LOCATION_DEALER_SCOPE", "WHEN_IN_USE")
    assert get_default_scope({"scope": "always"}) == AuthorizationScope.WHEN_IN_USE


def test_ip_settings_defaults():
    settings = get_ip_settings({})
    assert settings == {"url": DEFAULT_IP_LOOKUP_URL, "timeout": 5.0, "interval": 60.0}


def test_ip_settings_from_config(monkeypatch):
    monkeypatch.setenv("LOCATION_DEALER_IP_URL", "https://geo.example/json")
    settings = get_ip_settings({"ip": {"interval": 10, "url": "https://ignored"}})
    assert settings["url"] == "https://geo.example/json"
    assert settings["interval"] == 10.0


def test_dealer_uses_configured_accuracy(monkeypatch):
    from location_dealer.core.dealer import LocationDealer

    monkeypatch.setenv("LOCATION_DEALER_ACCURACY", "kilometer")
    dealer = LocationDealer()
    assert dealer.default_accuracy == KILOMETER
