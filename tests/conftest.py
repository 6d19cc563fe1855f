"""Shared test fixtures."""

from __future__ import annotations

from typing import Any

import pytest

from location_dealer.core.dealer import LocationDealer
from location_dealer.core.models import (
    THREE_KILOMETERS,
    AuthorizationScope,
    Location,
    LocationAccuracy,
)
from location_dealer.core.notifications import DealerNotification, NotificationSink
from location_dealer.core.permit import RawStatus
from location_dealer.core.provider import LocationProvider


class FakeProvider(LocationProvider):
    """Scripted provider: records every call, callbacks are fired by the test."""

    def __init__(
        self,
        status: RawStatus = RawStatus.AUTHORIZED_WHEN_IN_USE,
        service_enabled: bool = True,
    ) -> None:
        super().__init__()
        self.status = status
        self.service_enabled = service_enabled
        self.calls: list[str] = []
        self.accuracy_history: list[LocationAccuracy] = []
        self.authorization_requests: list[AuthorizationScope] = []
        self.unsupported: set[AuthorizationScope] = set()

    def authorization_status(self) -> RawStatus:
        return self.status

    def is_service_enabled(self) -> bool:
        return self.service_enabled

    def set_desired_accuracy(self, accuracy: LocationAccuracy) -> None:
        super().set_desired_accuracy(accuracy)
        self.accuracy_history.append(accuracy)

    def start_one_shot(self) -> None:
        self.calls.append("start_one_shot")

    def start_continuous(self) -> None:
        self.calls.append("start_continuous")

    def stop(self) -> None:
        self.calls.append("stop")

    def request_authorization(self, scope: AuthorizationScope) -> None:
        self.calls.append("request_authorization")
        self.authorization_requests.append(scope)

    def supports_scope(self, scope: AuthorizationScope) -> bool:
        return scope not in self.unsupported

    # --- scripted platform behaviour ---

    def authorize(self, status: RawStatus) -> None:
        self.status = status
        assert self.delegate is not None
        self.delegate.on_authorization_changed(status)

    def deliver(self, *locations: Location) -> None:
        assert self.delegate is not None
        self.delegate.on_locations_received(list(locations))

    def fail(self, message: str) -> None:
        assert self.delegate is not None
        self.delegate.on_error(message)


class RecordingSink(NotificationSink):
    def __init__(self) -> None:
        self.posted: list[tuple[DealerNotification, dict[str, Any]]] = []

    def post(self, name: DealerNotification, payload: dict[str, Any]) -> None:
        self.posted.append((name, payload))

    def names(self) -> list[DealerNotification]:
        return [name for name, _ in self.posted]


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def notifications() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def dealer(provider, notifications):
    """A dealer wired to the fake provider; reset after each test for isolation."""
    sut = LocationDealer(
        provider,
        notifications=notifications,
        default_accuracy=THREE_KILOMETERS,
        default_scope=AuthorizationScope.WHEN_IN_USE,
    )
    yield sut
    sut.reset()


@pytest.fixture
def novosibirsk() -> Location:
    return Location(latitude=55.0625, longitude=82.9375)
