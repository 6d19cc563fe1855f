"""Data model shared by the dealer, providers and CLI."""

from __future__ import annotations

import math
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class AuthorizationScope(StrEnum):
    WHEN_IN_USE = "when_in_use"
    ALWAYS = "always"


class PendingOrder(StrEnum):
    """The single location-related operation the dealer is waiting on."""

    NONE = "none"
    CURRENT_LOCATION_ONLY = "current_location_only"
    LOCATION_UPDATES = "location_updates"
    AUTHORIZATION_ONLY = "authorization_only"


class LocationAccuracy(BaseModel):
    """Opaque precision hint forwarded verbatim to the provider.

    Negative values are the platform's "best" sentinels, positive values are
    meters. The dealer never interprets the magnitude.
    """

    model_config = ConfigDict(frozen=True)

    value: float

    @classmethod
    def from_name(cls, name: str) -> LocationAccuracy:
        """Resolve a preset name such as 'hundred_meters'."""
        key = name.strip().lower().replace("-", "_")
        if key not in ACCURACY_PRESETS:
            raise ValueError(
                f"Unknown accuracy preset '{name}'. "
                f"Choose one of: {', '.join(ACCURACY_PRESETS)}"
            )
        return ACCURACY_PRESETS[key]


BEST_FOR_NAVIGATION = LocationAccuracy(value=-2.0)
BEST = LocationAccuracy(value=-1.0)
NEAREST_TEN_METERS = LocationAccuracy(value=10.0)
HUNDRED_METERS = LocationAccuracy(value=100.0)
KILOMETER = LocationAccuracy(value=1000.0)
THREE_KILOMETERS = LocationAccuracy(value=3000.0)

ACCURACY_PRESETS: dict[str, LocationAccuracy] = {
    "best_for_navigation": BEST_FOR_NAVIGATION,
    "best": BEST,
    "nearest_ten_meters": NEAREST_TEN_METERS,
    "hundred_meters": HUNDRED_METERS,
    "kilometer": KILOMETER,
    "three_kilometers": THREE_KILOMETERS,
}

DEFAULT_ACCURACY = THREE_KILOMETERS


def _cut(value: float, places: int) -> float:
    """Cut *value* toward zero to the given number of decimal places."""
    factor = 10.0**places
    return math.trunc(value * factor) / factor


class Location(BaseModel):
    """A read-only location snapshot.

    Two locations are equal when their coordinates are equal; accuracy and
    timestamp are informational.
    """

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    horizontal_accuracy: float | None = None
    timestamp: datetime | None = None

    @property
    def latitude_hundredths(self) -> float:
        return _cut(self.latitude, 2)

    @property
    def longitude_hundredths(self) -> float:
        return _cut(self.longitude, 2)

    @property
    def coordinates(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Location):
            return NotImplemented
        return self.coordinates == other.coordinates

    def __hash__(self) -> int:
        return hash(self.coordinates)

    def __str__(self) -> str:
        short = f"[{self.latitude_hundredths}, {self.longitude_hundredths}]"
        lat = _cut(self.latitude, 4)
        lon = _cut(self.longitude, 4)
        return f"{short}: latitude = {lat}, longitude = {lon}"
