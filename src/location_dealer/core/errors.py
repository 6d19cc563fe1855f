"""Location request errors."""

from __future__ import annotations

from typing import Any

from location_dealer.core.models import AuthorizationScope, PendingOrder
from location_dealer.core.permit import PermissionOutcome


class DealerError(Exception):
    """Base class for request outcomes delivered through a ResultChannel."""

    def _payload(self) -> tuple[Any, ...]:
        return self.args

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DealerError):
            return NotImplemented
        return type(self) is type(other) and self._payload() == other._payload()

    def __hash__(self) -> int:
        return hash((type(self), self._payload()))


class NeedsPermission(DealerError):
    """The current permit does not allow the request."""

    def __init__(self, permit: PermissionOutcome) -> None:
        self.permit = permit
        super().__init__(f"Location permission required (permit: {permit})")

    def _payload(self) -> tuple[Any, ...]:
        return (self.permit,)


class ReceivedEmptyLocationData(DealerError):
    """The provider reported success but delivered no locations."""

    def __init__(self) -> None:
        super().__init__("Received empty location data")


class FailedRequest(DealerError):
    """The provider reported an error. Not retried."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def _payload(self) -> tuple[Any, ...]:
        return (self.message,)


class AuthorizationNotSupported(FailedRequest):
    """The provider cannot prompt for the requested scope."""

    def __init__(self, scope: AuthorizationScope) -> None:
        self.scope = scope
        super().__init__(f"Authorization scope '{scope}' is not supported by the provider")


class DealerBusy(DealerError):
    """Another order is still pending; the new request was rejected."""

    def __init__(self, pending: PendingOrder) -> None:
        self.pending = pending
        super().__init__(f"Dealer is busy with a pending '{pending}' order")

    def _payload(self) -> tuple[Any, ...]:
        return (self.pending,)


class ChannelAlreadySettled(RuntimeError):
    """A ResultChannel was resolved or rejected more than once."""


class ProviderDetached(RuntimeError):
    """The dealer has no location provider attached."""

    def __init__(self) -> None:
        super().__init__("No location provider attached to the dealer")
