"""LocationDealer — coordinates location requests against a callback-driven provider.

The dealer tracks at most one pending order. Requests issued while another
order is pending are rejected with DealerBusy rather than superseding it, so
the first caller's channel is never lost.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from typing import Any

from location_dealer.core.channel import ResultChannel
from location_dealer.core.config import get_default_accuracy, get_default_scope
from location_dealer.core.errors import (
    AuthorizationNotSupported,
    DealerBusy,
    DealerError,
    FailedRequest,
    NeedsPermission,
    ProviderDetached,
    ReceivedEmptyLocationData,
)
from location_dealer.core.models import (
    AuthorizationScope,
    Location,
    LocationAccuracy,
    PendingOrder,
)
from location_dealer.core.notifications import DealerNotification, NotificationSink
from location_dealer.core.permit import PermissionOutcome, RawStatus, classify
from location_dealer.core.provider import LocationDelegate, LocationProvider

logger = logging.getLogger(__name__)

UpdateSink = Callable[[Location], None]
ErrorHandler = Callable[[DealerError], None]


class LocationDealer(LocationDelegate):
    """Broker between application code and a LocationProvider.

    Request methods that return a ResultChannel must be called with a running
    event loop; the result is delivered on that loop. Provider callbacks may
    arrive on any thread.
    """

    def __init__(
        self,
        provider: LocationProvider | None = None,
        notifications: NotificationSink | None = None,
        default_accuracy: LocationAccuracy | None = None,
        default_scope: AuthorizationScope | None = None,
    ) -> None:
        # Re-entrant: providers may call back synchronously from start_*().
        self._lock = threading.RLock()
        self._provider: LocationProvider | None = None
        self._order = PendingOrder.NONE
        self._channel: ResultChannel[Any] | None = None
        self._sink: UpdateSink | None = None
        self._on_error: ErrorHandler | None = None
        self._subscribed = False
        self._requested_accuracy: LocationAccuracy | None = None

        self.notifications = notifications
        self.default_accuracy = (
            default_accuracy if default_accuracy is not None else get_default_accuracy()
        )
        self.default_scope = default_scope if default_scope is not None else get_default_scope()

        if provider is not None:
            self.attach(provider)

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    @property
    def provider(self) -> LocationProvider | None:
        return self._provider

    def attach(self, provider: LocationProvider) -> None:
        """Bind *provider* and become its delegate."""
        with self._lock:
            if self._provider is not None and self._provider is not provider:
                self._provider.delegate = None
            self._provider = provider
            provider.delegate = self
            provider.set_desired_accuracy(self.default_accuracy)
        logger.debug("Attached provider %s", type(provider).__name__)

    def reset(self) -> None:
        """Clear the pending order and detach every collaborator.

        An in-flight channel is dropped unresolved. Callbacks arriving after
        the reset are ignored.
        """
        with self._lock:
            provider = self._provider
            try:
                self._stop_provider()
            finally:
                if provider is not None:
                    provider.delegate = None
                self._provider = None
                self._clear()
                self.notifications = None
        logger.debug("Dealer reset")

    def _require_provider(self) -> LocationProvider:
        provider = self._provider
        if provider is None:
            raise ProviderDetached()
        return provider

    # ------------------------------------------------------------------
    # Pass-through reads
    # ------------------------------------------------------------------

    def current_authorization(self) -> RawStatus:
        return self._require_provider().authorization_status()

    def location_services_enabled(self) -> bool:
        return self._require_provider().is_service_enabled()

    def permit(self) -> PermissionOutcome:
        return classify(self.location_services_enabled(), self.current_authorization())

    @property
    def desired_accuracy(self) -> LocationAccuracy:
        return self._require_provider().desired_accuracy

    @property
    def pending_order(self) -> PendingOrder:
        return self._order

    @pending_order.setter
    def pending_order(self, order: PendingOrder) -> None:
        with self._lock:
            self._order = order

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def request_authorization(
        self, scope: AuthorizationScope | None = None
    ) -> ResultChannel[PermissionOutcome]:
        """Prompt for *scope* and resolve with the resulting permit.

        Resolves immediately when the permit is already decided.
        """
        scope = scope if scope is not None else self.default_scope
        provider = self._require_provider()

        permit = self.permit()
        if permit != PermissionOutcome.NOT_DETERMINED:
            logger.debug("Authorization already decided: %s", permit)
            return ResultChannel.resolved(permit)

        if not provider.supports_scope(scope):
            logger.warning("Provider cannot prompt for scope %s", scope)
            return ResultChannel.rejected(AuthorizationNotSupported(scope))

        channel: ResultChannel[PermissionOutcome] = ResultChannel()
        with self._lock:
            if self._order != PendingOrder.NONE:
                logger.warning("Authorization request rejected: %s pending", self._order)
                channel.reject(DealerBusy(self._order))
                return channel
            self._order = PendingOrder.AUTHORIZATION_ONLY
            self._channel = channel
            self._notify(DealerNotification.AUTHORIZATION_REQUESTED, {"scope": scope})
            provider.request_authorization(scope)
        return channel

    def request_current_location(
        self, accuracy: LocationAccuracy | None = None
    ) -> ResultChannel[Location]:
        """Request a single location.

        Rejects immediately with NeedsPermission unless the permit is allowed;
        the provider is not touched in that case.
        """
        provider = self._require_provider()

        permit = self.permit()
        if permit != PermissionOutcome.ALLOWED:
            logger.info("Current location refused, permit is %s", permit)
            return ResultChannel.rejected(NeedsPermission(permit))

        channel: ResultChannel[Location] = ResultChannel()
        with self._lock:
            if self._order != PendingOrder.NONE:
                logger.warning("Current location rejected: %s pending", self._order)
                channel.reject(DealerBusy(self._order))
                return channel
            self._order = PendingOrder.CURRENT_LOCATION_ONLY
            self._channel = channel
            self._requested_accuracy = accuracy
            self._start_subscription(provider)
        return channel

    def start_updating_location(
        self,
        sink: UpdateSink,
        accuracy: LocationAccuracy | None = None,
        on_error: ErrorHandler | None = None,
    ) -> None:
        """Forward every location to *sink* until stop_updating_location().

        When the permit is not determined yet, the provider is asked to prompt
        and updates start once authorization arrives. A provider that delivers
        synchronously from start_continuous() calls *sink* on this thread with
        the dealer's re-entrant lock still held; the sink may call back into
        the dealer but must not wait on other threads that use it.
        """
        provider = self._require_provider()

        permit = self.permit()
        if permit.is_denial:
            logger.info("Location updates refused, permit is %s", permit)
            self._report(on_error, NeedsPermission(permit))
            return

        deferred = permit == PermissionOutcome.NOT_DETERMINED
        if deferred and not provider.supports_scope(self.default_scope):
            self._report(on_error, AuthorizationNotSupported(self.default_scope))
            return

        with self._lock:
            pending = self._order
            if pending == PendingOrder.NONE:
                self._order = PendingOrder.LOCATION_UPDATES
                self._sink = sink
                self._on_error = on_error
                self._requested_accuracy = accuracy
                if deferred:
                    logger.info("Location updates deferred until authorization")
                    self._notify(
                        DealerNotification.AUTHORIZATION_REQUESTED,
                        {"scope": self.default_scope},
                    )
                    provider.request_authorization(self.default_scope)
                else:
                    self._start_subscription(provider)

        if pending != PendingOrder.NONE:
            logger.warning("Location updates rejected: %s pending", pending)
            self._report(on_error, DealerBusy(pending))

    def stop_updating_location(self) -> None:
        """Cancel any subscription and return to no pending order.

        Safe to call repeatedly. A one-shot or authorization request that is
        still pending is rejected with FailedRequest, even when the provider
        fails to stop.
        """
        channel: ResultChannel[Any] | None = None
        try:
            with self._lock:
                previous = self._order
                try:
                    self._stop_provider()
                finally:
                    channel, _ = self._clear()
        finally:
            if channel is not None and not channel.settled:
                channel.reject(FailedRequest("request stopped"))
        if previous != PendingOrder.NONE:
            logger.info("Stopped %s", previous)

    # ------------------------------------------------------------------
    # LocationDelegate callbacks
    # ------------------------------------------------------------------

    def on_authorization_changed(self, status: RawStatus) -> None:
        channel: ResultChannel[Any] | None = None
        on_error: ErrorHandler | None = None
        error: DealerError | None = None

        with self._lock:
            provider = self._provider
            if provider is None:
                logger.debug("Ignoring authorization change on detached dealer")
                return
            permit = classify(provider.is_service_enabled(), status)
            order = self._order
            logger.debug("Authorization changed to %s (permit %s, order %s)", status, permit, order)

            if order == PendingOrder.AUTHORIZATION_ONLY:
                if permit != PermissionOutcome.NOT_DETERMINED:
                    channel, _ = self._finish()
            elif order in (PendingOrder.CURRENT_LOCATION_ONLY, PendingOrder.LOCATION_UPDATES):
                if permit == PermissionOutcome.ALLOWED:
                    if not self._subscribed:
                        logger.info("Authorization granted, starting deferred %s", order)
                        self._start_subscription(provider)
                elif permit.is_denial:
                    channel, on_error = self._finish()
                    error = NeedsPermission(permit)

        self._notify(
            DealerNotification.AUTHORIZATION_CHANGED, {"status": status, "permit": permit}
        )
        if order == PendingOrder.AUTHORIZATION_ONLY:
            if channel is not None:
                channel.resolve(permit)
        elif error is not None:
            if order == PendingOrder.LOCATION_UPDATES:
                self._report(on_error, error)
            else:
                self._reject(channel, error)

    def on_locations_received(self, locations: Sequence[Location]) -> None:
        locations = list(locations)
        channel: ResultChannel[Any] | None = None

        with self._lock:
            order = self._order
            if self._provider is None or order in (
                PendingOrder.NONE,
                PendingOrder.AUTHORIZATION_ONLY,
            ):
                logger.debug("Ignoring %d stray location(s), order is %s", len(locations), order)
                return
            if not self._subscribed:
                # Order recorded, still waiting for authorization.
                logger.debug("Ignoring %d location(s) before subscription start", len(locations))
                return
            if order == PendingOrder.CURRENT_LOCATION_ONLY:
                channel, _ = self._finish()
            sink, on_error = self._sink, self._on_error

        if order == PendingOrder.CURRENT_LOCATION_ONLY:
            if not locations:
                self._reject(channel, ReceivedEmptyLocationData())
                return
            location = locations[0]
            self._notify(DealerNotification.CURRENT_LOCATION, {"location": location})
            if channel is not None:
                channel.resolve(location)
            return

        if not locations:
            self._report(on_error, ReceivedEmptyLocationData())
            return
        for location in locations:
            self._notify(DealerNotification.LOCATION_UPDATES, {"location": location})
            if sink is not None:
                sink(location)

    def on_error(self, message: str) -> None:
        channel: ResultChannel[Any] | None = None

        with self._lock:
            order = self._order
            if self._provider is None or order == PendingOrder.NONE:
                logger.warning("Provider error with no pending order: %s", message)
                return
            if order != PendingOrder.LOCATION_UPDATES:
                channel, _ = self._finish()
            on_error = self._on_error

        error = FailedRequest(message)
        if order == PendingOrder.LOCATION_UPDATES:
            self._report(on_error, error)
        else:
            self._reject(channel, error)

    # ------------------------------------------------------------------
    # Internals (call with the lock held unless noted)
    # ------------------------------------------------------------------

    def _start_subscription(self, provider: LocationProvider) -> None:
        accuracy = self._requested_accuracy
        if accuracy is None:
            accuracy = self.default_accuracy
        provider.set_desired_accuracy(accuracy)
        self._subscribed = True
        if self._order == PendingOrder.CURRENT_LOCATION_ONLY:
            logger.info("Requesting one-shot location (accuracy %s)", accuracy.value)
            provider.start_one_shot()
        else:
            logger.info("Starting location updates (accuracy %s)", accuracy.value)
            provider.start_continuous()

    def _finish(self) -> tuple[ResultChannel[Any] | None, ErrorHandler | None]:
        """Stop the subscription and return to NONE, handing back the waiters.

        The state is cleared even if the provider fails to stop.
        """
        try:
            self._stop_provider()
        finally:
            waiters = self._clear()
        return waiters

    def _stop_provider(self) -> None:
        if self._subscribed and self._provider is not None:
            self._subscribed = False
            self._provider.stop()

    def _clear(self) -> tuple[ResultChannel[Any] | None, ErrorHandler | None]:
        channel, on_error = self._channel, self._on_error
        self._order = PendingOrder.NONE
        self._channel = None
        self._sink = None
        self._on_error = None
        self._subscribed = False
        self._requested_accuracy = None
        return channel, on_error

    def _reject(self, channel: ResultChannel[Any] | None, error: DealerError) -> None:
        """Lock not required."""
        self._notify(DealerNotification.ERROR, {"error": error})
        if channel is not None:
            channel.reject(error)

    def _report(self, on_error: ErrorHandler | None, error: DealerError) -> None:
        """Lock not required."""
        self._notify(DealerNotification.ERROR, {"error": error})
        if on_error is not None:
            on_error(error)

    def _notify(self, name: DealerNotification, payload: dict[str, Any]) -> None:
        sink = self.notifications
        if sink is None:
            return
        try:
            sink.post(name, payload)
        except Exception:
            logger.exception("Notification sink failed on %s", name)
