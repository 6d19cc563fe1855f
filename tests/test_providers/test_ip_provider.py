"""Tests for the IP geolocation provider."""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from location_dealer.core.dealer import LocationDealer
from location_dealer.core.errors import FailedRequest
from location_dealer.core.models import (
    THREE_KILOMETERS,
    AuthorizationScope,
    Location,
    PendingOrder,
)
from location_dealer.core.permit import PermissionOutcome, RawStatus
from location_dealer.providers.ip import IPLocationProvider, parse_ip_location

_ASYNC_CLIENT = "location_dealer.providers.ip.httpx.AsyncClient"


def _mock_httpx_response(latitude: float = 55.0625, longitude: float = 82.9375) -> AsyncMock:
    """Create a mock httpx client returning the given coordinates."""
    return _mock_httpx_payload(
        {
            "latitude": latitude,
            "longitude": longitude,
            "city": "Novosibirsk",
            "timezone": "Asia/Novosibirsk",
        }
    )


def _mock_httpx_payload(payload: Any) -> AsyncMock:
    mock_resp = MagicMock()
    mock_resp.json.return_value = payload
    mock_resp.raise_for_status = MagicMock()

    mock_client = AsyncMock()
    mock_client.get.return_value = mock_resp
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    return mock_client


def _mock_httpx_failure(exc: Exception) -> AsyncMock:
    mock_client = AsyncMock()
    mock_client.get.side_effect = exc
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    return mock_client


def _dealer(provider: IPLocationProvider) -> LocationDealer:
    return LocationDealer(
        provider,
        default_accuracy=THREE_KILOMETERS,
        default_scope=AuthorizationScope.WHEN_IN_USE,
    )


def test_parse_ip_location():
    location = parse_ip_location({"latitude": "55.0625", "longitude": 82.9375})
    assert location == Location(latitude=55.0625, longitude=82.9375)
    assert location.horizontal_accuracy is not None
    assert location.timestamp is not None


def test_parse_error_payload():
    with pytest.raises(ValueError, match="RateLimited"):
        parse_ip_location({"error": True, "reason": "RateLimited"})


def test_parse_missing_coordinates():
    with pytest.raises(KeyError):
        parse_ip_location({"city": "Nowhere"})


def test_parse_null_coordinates():
    with pytest.raises(ValueError):
        parse_ip_location({"latitude": None, "longitude": None})


@pytest.mark.parametrize("payload", [None, [], "rate limited", 42])
def test_parse_rejects_non_object_payload(payload):
    with pytest.raises(ValueError, match="Unexpected IP geolocation payload"):
        parse_ip_location(payload)


def test_always_authorized():
    provider = IPLocationProvider()
    dealer = _dealer(provider)
    assert dealer.current_authorization() == RawStatus.AUTHORIZED_ALWAYS
    assert dealer.location_services_enabled() is True
    assert dealer.permit() == PermissionOutcome.ALLOWED


@pytest.mark.asyncio
async def test_one_shot_through_dealer():
    provider = IPLocationProvider(url="https://geo.example/json")
    dealer = _dealer(provider)

    with patch(_ASYNC_CLIENT, return_value=_mock_httpx_response()) as client_cls:
        location = await asyncio.wait_for(dealer.request_current_location(), timeout=1)

    assert location == Location(latitude=55.0625, longitude=82.9375)
    client_cls.return_value.get.assert_awaited_once_with("https://geo.example/json")
    client_cls.assert_called_once_with(timeout=provider.timeout)


@pytest.mark.asyncio
async def test_http_error_becomes_failed_request():
    provider = IPLocationProvider()
    dealer = _dealer(provider)

    failure = _mock_httpx_failure(httpx.ConnectError("connection refused"))
    with patch(_ASYNC_CLIENT, return_value=failure):
        with pytest.raises(FailedRequest, match="connection refused"):
            await asyncio.wait_for(dealer.request_current_location(), timeout=1)


@pytest.mark.asyncio
async def test_continuous_updates_until_stopped():
    provider = IPLocationProvider(interval=0)
    dealer = _dealer(provider)
    received: list[Location] = []
    done = asyncio.Event()

    def sink(location: Location) -> None:
        received.append(location)
        if len(received) == 2:
            dealer.stop_updating_location()
            done.set()

    with patch(_ASYNC_CLIENT, return_value=_mock_httpx_response()):
        dealer.start_updating_location(sink)
        await asyncio.wait_for(done.wait(), timeout=1)
        await asyncio.sleep(0.01)

    assert len(received) == 2
    assert provider._task is None


@pytest.mark.asyncio
async def test_stop_cancels_pending_lookup():
    provider = IPLocationProvider(interval=3600)
    dealer = _dealer(provider)
    received: list[Location] = []

    with patch(_ASYNC_CLIENT, return_value=_mock_httpx_response()):
        dealer.start_updating_location(received.append)
        task = provider._task
        await asyncio.sleep(0.01)
        dealer.stop_updating_location()
        await asyncio.sleep(0)

    assert received == [Location(latitude=55.0625, longitude=82.9375)]
    assert task is not None and task.cancelled()


@pytest.mark.asyncio
async def test_request_authorization_reports_status():
    provider = IPLocationProvider()
    delegate = MagicMock()
    provider.delegate = delegate

    provider.request_authorization(AuthorizationScope.ALWAYS)
    await asyncio.sleep(0)

    delegate.on_authorization_changed.assert_called_once_with(RawStatus.AUTHORIZED_ALWAYS)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [{"latitude": None, "longitude": None}, None, ["55.0625", "82.9375"]],
)
async def test_malformed_payload_becomes_failed_request(payload):
    provider = IPLocationProvider()
    dealer = _dealer(provider)

    with patch(_ASYNC_CLIENT, return_value=_mock_httpx_payload(payload)):
        with pytest.raises(FailedRequest, match="IP geolocation failed"):
            await asyncio.wait_for(dealer.request_current_location(), timeout=1)

    assert dealer.pending_order == PendingOrder.NONE


@pytest.mark.asyncio
async def test_stop_from_another_thread_cancels_lookup():
    provider = IPLocationProvider(interval=3600)
    dealer = _dealer(provider)
    received: list[Location] = []

    with patch(_ASYNC_CLIENT, return_value=_mock_httpx_response()):
        dealer.start_updating_location(received.append)
        task = provider._task
        await asyncio.sleep(0.01)
        await asyncio.to_thread(dealer.stop_updating_location)
        assert dealer.pending_order == PendingOrder.NONE
        await asyncio.sleep(0.01)

    assert len(received) == 1
    assert task is not None and task.cancelled()


@pytest.mark.asyncio
async def test_reset_from_another_thread_cancels_lookup():
    provider = IPLocationProvider(interval=3600)
    dealer = _dealer(provider)

    with patch(_ASYNC_CLIENT, return_value=_mock_httpx_response()):
        dealer.start_updating_location(lambda location: None)
        task = provider._task
        await asyncio.sleep(0.01)
        await asyncio.to_thread(dealer.reset)
        await asyncio.sleep(0.01)

    assert dealer.pending_order == PendingOrder.NONE
    assert dealer.provider is None
    assert provider.delegate is None
    assert task is not None and task.cancelled()


def test_stop_without_running_loop_is_harmless():
    provider = IPLocationProvider()
    provider.stop()
    provider.stop()
    assert provider._task is None
