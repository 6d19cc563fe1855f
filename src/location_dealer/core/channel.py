"""Single-use result delivery for asynchronous location requests."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Generator
from typing import Any, Generic, TypeVar

from location_dealer.core.errors import ChannelAlreadySettled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResultChannel(Generic[T]):
    """Deliver one value or one error back to the caller's event loop.

    The channel is created on the caller's running loop. ``resolve`` and
    ``reject`` may be called from any thread; delivery is always scheduled
    onto the caller's loop. Settling twice raises ChannelAlreadySettled.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop if loop is not None else asyncio.get_running_loop()
        self._future: asyncio.Future[T] = self._loop.create_future()
        self._lock = threading.Lock()
        self._settled = False

    @classmethod
    def resolved(cls, value: T) -> ResultChannel[T]:
        channel: ResultChannel[T] = cls()
        channel.resolve(value)
        return channel

    @classmethod
    def rejected(cls, error: BaseException) -> ResultChannel[T]:
        channel: ResultChannel[T] = cls()
        channel.reject(error)
        return channel

    @property
    def settled(self) -> bool:
        return self._settled

    def resolve(self, value: T) -> None:
        self._settle(value, None)

    def reject(self, error: BaseException) -> None:
        self._settle(None, error)

    def _settle(self, value: Any, error: BaseException | None) -> None:
        with self._lock:
            if self._settled:
                raise ChannelAlreadySettled("ResultChannel settled more than once")
            self._settled = True

        if self._loop.is_closed():
            logger.warning("Dropping result: caller's event loop is closed")
            return
        try:
            self._loop.call_soon_threadsafe(self._deliver, value, error)
        except RuntimeError:
            # Loop closed between the check and the call.
            logger.warning("Dropping result: caller's event loop is closed")

    def _deliver(self, value: Any, error: BaseException | None) -> None:
        if self._future.done():
            logger.debug("Dropping result: caller no longer waiting")
            return
        if error is not None:
            self._future.set_exception(error)
        else:
            self._future.set_result(value)

    def __await__(self) -> Generator[Any, None, T]:
        return self._future.__await__()
