"""IP geolocation provider: coarse location from the public IP address."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from location_dealer.core.config import (
    DEFAULT_IP_INTERVAL,
    DEFAULT_IP_LOOKUP_URL,
    DEFAULT_IP_TIMEOUT,
)
from location_dealer.core.models import AuthorizationScope, Location
from location_dealer.core.permit import RawStatus
from location_dealer.core.provider import LocationProvider

logger = logging.getLogger(__name__)

# IP geolocation is city-level at best
_IP_HORIZONTAL_ACCURACY = 5000.0


def parse_ip_location(data: Any) -> Location:
    """Build a Location from an ipapi-style JSON payload.

    Raises ValueError for error payloads, non-object payloads and unusable
    coordinates (pydantic's ValidationError is a ValueError), and KeyError
    for missing coordinates.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Unexpected IP geolocation payload: {type(data).__name__}")
    if data.get("error"):
        raise ValueError(data.get("reason") or "IP geolocation service returned an error")
    return Location(
        latitude=data["latitude"],
        longitude=data["longitude"],
        horizontal_accuracy=_IP_HORIZONTAL_ACCURACY,
        timestamp=datetime.now(UTC),
    )


class IPLocationProvider(LocationProvider):
    """Location provider backed by an HTTP IP geolocation service.

    There is no OS permission involved: the status is always authorized and
    the service always enabled. Work runs as tasks on the event loop that was
    running when start_one_shot() or start_continuous() was called. The
    desired accuracy is recorded but cannot change what the service returns.
    """

    def __init__(
        self,
        url: str = DEFAULT_IP_LOOKUP_URL,
        timeout: float = DEFAULT_IP_TIMEOUT,
        interval: float = DEFAULT_IP_INTERVAL,
    ) -> None:
        super().__init__()
        self.url = url
        self.timeout = timeout
        self.interval = interval
        self._task: asyncio.Task[None] | None = None
        self._active = False

    def authorization_status(self) -> RawStatus:
        return RawStatus.AUTHORIZED_ALWAYS

    def is_service_enabled(self) -> bool:
        return True

    def start_one_shot(self) -> None:
        self._launch(self._run_once())

    def start_continuous(self) -> None:
        self._launch(self._run_forever())

    def stop(self) -> None:
        self._active = False
        task, self._task = self._task, None
        if task is None or task.done():
            return
        loop = task.get_loop()
        if _running_loop() is loop:
            # The dealer stops us from inside our own delivery; let that task finish.
            if task is not asyncio.current_task(loop):
                task.cancel()
        elif not loop.is_closed():
            loop.call_soon_threadsafe(task.cancel)

    def request_authorization(self, scope: AuthorizationScope) -> None:
        loop = asyncio.get_running_loop()
        loop.call_soon(self._report_status)

    def _report_status(self) -> None:
        if self.delegate is not None:
            self.delegate.on_authorization_changed(self.authorization_status())

    def _launch(self, coro: Any) -> None:
        self.stop()
        self._active = True
        self._task = asyncio.get_running_loop().create_task(coro)

    async def fetch(self) -> Location:
        """Query the geolocation service once."""
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.get(self.url)
            resp.raise_for_status()
            return parse_ip_location(resp.json())

    async def _fetch_and_deliver(self) -> None:
        try:
            location = await self.fetch()
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.warning("IP geolocation failed: %s", e)
            if self._active and self.delegate is not None:
                self.delegate.on_error(f"IP geolocation failed: {e}")
            return
        if self._active and self.delegate is not None:
            self.delegate.on_locations_received([location])

    async def _run_once(self) -> None:
        await self._fetch_and_deliver()
        self._active = False

    async def _run_forever(self) -> None:
        while self._active:
            await self._fetch_and_deliver()
            if not self._active:
                break
            await asyncio.sleep(self.interval)


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
