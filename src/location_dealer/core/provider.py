"""Platform collaborator contract — every location source implements this interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from location_dealer.core.models import (
    DEFAULT_ACCURACY,
    AuthorizationScope,
    Location,
    LocationAccuracy,
)
from location_dealer.core.permit import RawStatus


class LocationDelegate(ABC):
    """Receives callbacks from a LocationProvider.

    Providers may call these from any thread, including synchronously from
    inside ``start_one_shot`` or ``request_authorization``.
    """

    @abstractmethod
    def on_authorization_changed(self, status: RawStatus) -> None:
        """The user answered a prompt or changed settings."""
        ...

    @abstractmethod
    def on_locations_received(self, locations: Sequence[Location]) -> None:
        """One or more locations were produced, oldest first."""
        ...

    @abstractmethod
    def on_error(self, message: str) -> None:
        """The provider failed to produce a location."""
        ...


class LocationProvider(ABC):
    """Abstract base class for platform location services."""

    delegate: LocationDelegate | None = None

    def __init__(self) -> None:
        self.delegate = None
        self._desired_accuracy = DEFAULT_ACCURACY

    @abstractmethod
    def authorization_status(self) -> RawStatus:
        """Return the current raw authorization status."""
        ...

    @abstractmethod
    def is_service_enabled(self) -> bool:
        """Return whether location services are enabled system-wide."""
        ...

    @abstractmethod
    def start_one_shot(self) -> None:
        """Deliver a single location (or error) to the delegate, then stop."""
        ...

    @abstractmethod
    def start_continuous(self) -> None:
        """Deliver locations to the delegate until stop() is called."""
        ...

    @abstractmethod
    def stop(self) -> None:
        """Cancel any active subscription. Must be safe to call when idle."""
        ...

    @abstractmethod
    def request_authorization(self, scope: AuthorizationScope) -> None:
        """Prompt the user; the answer arrives via on_authorization_changed."""
        ...

    @property
    def desired_accuracy(self) -> LocationAccuracy:
        return self._desired_accuracy

    def set_desired_accuracy(self, accuracy: LocationAccuracy) -> None:
        self._desired_accuracy = accuracy

    def supports_scope(self, scope: AuthorizationScope) -> bool:
        """Return whether request_authorization can prompt for *scope*."""
        return True
