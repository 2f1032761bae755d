"""Tests for the location provider."""

import asyncio

import httpx
import pytest

from trafficaz.errors import DataSourceError, LocationPermissionDenied
from trafficaz.location import CONFIGURED_ACCURACY, GEOIP_ACCURACY, LocationProvider


def test_disabled_location_raises_permission_denied():
    with pytest.raises(LocationPermissionDenied):
        asyncio.run(LocationProvider(enabled=False, fixed=(1.0, 2.0)).current_position())


def test_fixed_location_is_used():
    fix = asyncio.run(LocationProvider(fixed=(3.848, 11.502)).current_position())
    assert (fix.latitude, fix.longitude, fix.accuracy) == (3.848, 11.502, CONFIGURED_ACCURACY)
    assert fix.timestamp > 0


def test_geoip_lookup():
    def handler(request):
        return httpx.Response(200, json={"status": "success", "lat": 3.87, "lon": 11.52})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = LocationProvider(geoip_url="https://geo.test/json", client=client)
    fix = asyncio.run(provider.current_position())
    assert (fix.latitude, fix.longitude, fix.accuracy) == (3.87, 11.52, GEOIP_ACCURACY)


def test_geoip_failure_is_a_data_source_error():
    def handler(request):
        return httpx.Response(200, json={"status": "fail"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = LocationProvider(geoip_url="https://geo.test/json", client=client)
    with pytest.raises(DataSourceError):
        asyncio.run(provider.current_position())
