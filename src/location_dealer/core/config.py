"""Configuration loading — reads optional TOML config file and environment overrides."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from location_dealer.core.models import (
    DEFAULT_ACCURACY,
    AuthorizationScope,
    LocationAccuracy,
)

DEFAULT_CONFIG_PATHS = [
    Path.home() / ".config" / "location-dealer" / "config.toml",
    Path("location-dealer.toml"),
]

DEFAULT_IP_LOOKUP_URL = "https://ipapi.co/json/"
DEFAULT_IP_TIMEOUT = 5.0
DEFAULT_IP_INTERVAL = 60.0


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration from a TOML file.

    Searches default paths if no explicit path is given.
    Returns an empty dict if no config file is found.
    """
    paths = [path] if path is not None else DEFAULT_CONFIG_PATHS

    for p in paths:
        if p.exists():
            with open(p, "rb") as f:
                return tomllib.load(f)

    return {}


def get_default_accuracy(config: dict[str, Any] | None = None) -> LocationAccuracy:
    """Default accuracy: LOCATION_DEALER_ACCURACY env var → config.toml → three_kilometers."""
    env = os.environ.get("LOCATION_DEALER_ACCURACY")
    if env:
        return LocationAccuracy.from_name(env)
    if config is None:
        config = load_config()
    name = config.get("accuracy")
    if name is None:
        return DEFAULT_ACCURACY
    return LocationAccuracy.from_name(str(name))


def get_default_scope(config: dict[str, Any] | None = None) -> AuthorizationScope:
    """Default scope: LOCATION_DEALER_SCOPE env var → config.toml → when_in_use."""
    env = os.environ.get("LOCATION_DEALER_SCOPE")
    if env:
        return AuthorizationScope(env.lower())
    if config is None:
        config = load_config()
    return AuthorizationScope(str(config.get("scope", AuthorizationScope.WHEN_IN_USE)).lower())


def get_ip_settings(config: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return url, timeout and interval for the IP geolocation provider."""
    if config is None:
        config = load_config()
    ip_config = config.get("ip", {})
    return {
        "url": os.environ.get("LOCATION_DEALER_IP_URL")
        or ip_config.get("url", DEFAULT_IP_LOOKUP_URL),
        "timeout": float(ip_config.get("timeout", DEFAULT_IP_TIMEOUT)),
        "interval": float(ip_config.get("interval", DEFAULT_IP_INTERVAL)),
    }
