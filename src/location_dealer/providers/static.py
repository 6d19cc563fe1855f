"""Provider that always reports one configured location."""

from __future__ import annotations

from location_dealer.core.models import AuthorizationScope, Location
from location_dealer.core.permit import RawStatus
from location_dealer.core.provider import LocationProvider


class StaticLocationProvider(LocationProvider):
    """Report the same location every time it is asked.

    Authorization prompts are answered immediately with *grant*. Continuous
    updates deliver the location *repeat* times in a row, stopping early if
    stop() is called from the delegate.
    """

    def __init__(
        self,
        location: Location,
        status: RawStatus = RawStatus.AUTHORIZED_WHEN_IN_USE,
        service_enabled: bool = True,
        grant: RawStatus = RawStatus.AUTHORIZED_WHEN_IN_USE,
        repeat: int = 1,
    ) -> None:
        super().__init__()
        self.location = location
        self.status = status
        self.service_enabled = service_enabled
        self.grant = grant
        self.repeat = repeat
        self.running = False

    def authorization_status(self) -> RawStatus:
        return self.status

    def is_service_enabled(self) -> bool:
        return self.service_enabled

    def start_one_shot(self) -> None:
        self.running = True
        self._deliver()

    def start_continuous(self) -> None:
        self.running = True
        for _ in range(self.repeat):
            if not self.running:
                break
            self._deliver()

    def stop(self) -> None:
        self.running = False

    def request_authorization(self, scope: AuthorizationScope) -> None:
        self.status = self.grant
        if self.delegate is not None:
            self.delegate.on_authorization_changed(self.status)

    def _deliver(self) -> None:
        if self.delegate is not None:
            self.delegate.on_locations_received([self.location])
