"""Tests for the EcontClient facade."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
import pytest

from conftest import FakeClock
from econt import EcontClient
from econt.cache.store import MemoryStore
from econt.exceptions import CacheDisabledError, ExportAbortedError
from econt.models import ClientConfig, DataSource, Environment, ExportState


_BASE = "https://demo.econt.com/ee/services"


class _NomenclatureApi:
    """Mock NomenclaturesService with a per-method call counter."""

    def __init__(self) -> None:
        self.calls: dict[str, int] = {}
        self.fail: set[str] = set()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        method = request.url.path.rsplit(".", 2)[-2]
        self.calls[method] = self.calls.get(method, 0) + 1
        if method in self.fail:
            return httpx.Response(400, json={"message": f"{method} failed"})
        body = json.loads(request.content)
        if method == "getCountries":
            return httpx.Response(200, json={"countries": [{"code3": "BGR", "name": "България"}]})
        if method == "getCities":
            return httpx.Response(200, json={"cities": [
                {"id": 41, "name": "София", "country": {"code3": "BGR"}},
                {"id": 42, "name": "Варна", "country": {"code3": "BGR"}},
            ]})
        if method == "getOffices":
            return httpx.Response(200, json={"offices": [
                {"code": "1000", "name": "София", "address": {"city": {"id": 41, "country": {"code3": "BGR"}}}},
                {"code": "9000", "name": "Варна", "address": {"city": {"id": 42, "country": {"code3": "BGR"}}}},
            ]})
        if method == "getStreets":
            city_id = body["cityID"]
            return httpx.Response(200, json={"streets": [{"id": city_id * 10, "cityID": city_id, "name": "Главна"}]})
        return httpx.Response(404)


@pytest.fixture
def api() -> _NomenclatureApi:
    return _NomenclatureApi()


@pytest.fixture
def http_client(api: _NomenclatureApi) -> httpx.Client:
    client = httpx.Client(base_url=_BASE, transport=httpx.MockTransport(api))
    yield client
    client.close()


def _client(http_client: httpx.Client, **kwargs: Any) -> EcontClient:
    kwargs.setdefault("store", MemoryStore())
    return EcontClient(
        ClientConfig(cache={"enabled": True}),
        http_client=http_client,
        **kwargs,
    )


class TestConstruction:
    def test_keyword_overrides_build_config(self) -> None:
        with EcontClient(username="iasp-dev", password="1Asp-dev", environment="production") as client:
            assert client.config.username == "iasp-dev"
            assert client.config.environment == Environment.PRODUCTION
            assert not client.cache.enabled

    def test_overrides_merge_into_config(self) -> None:
        with EcontClient(ClientConfig(username="a"), password="b") as client:
            assert client.config.username == "a"
            assert client.config.password == "b"

    def test_default_disk_store_in_configured_directory(self, tmp_path: Path) -> None:
        directory = tmp_path / "econt-cache"
        with EcontClient(cache={"enabled": True, "directory": str(directory)}) as client:
            report = client.get_cache_status()
            assert report.enabled
            assert report.location == str(directory)
        assert directory.is_dir()

    def test_default_disk_store_in_xdg_cache(self, isolated_config: Path, monkeypatch) -> None:
        monkeypatch.setattr("econt.config._is_xdg_platform", lambda: True)
        with EcontClient(cache={"enabled": True}) as client:
            location = Path(client.get_cache_status().location)
        assert location.name == "nomenclatures"
        assert str(location).startswith(str(isolated_config))

    def test_from_config_reads_environment(self, isolated_config: Path, monkeypatch) -> None:
        monkeypatch.setenv("ECONT_USERNAME", "env-user")
        monkeypatch.setenv("ECONT_CACHE_TTL_MS", "5000")
        with EcontClient.from_config(password="secret") as client:
            assert client.config.username == "env-user"
            assert client.config.password == "secret"
            assert client.config.cache.ttl_ms == 5000


class TestCachedLookups:
    def test_offices_served_from_cache_on_second_call(self, http_client, api) -> None:
        with _client(http_client) as client:
            first = client.offices.list(city_id=42)
            second = client.offices.list(city_id=41)
        assert [o.code for o in first] == ["9000"]
        assert [o.code for o in second] == ["1000"]
        assert api.calls["getOffices"] == 1

    def test_disabled_cache_always_calls_api(self, http_client, api) -> None:
        with EcontClient(http_client=http_client) as client:
            client.offices.get_countries()
            client.offices.get_countries()
        assert api.calls["getCountries"] == 2

    def test_clients_do_not_share_state(self, http_client, api) -> None:
        with _client(http_client) as one, _client(http_client) as two:
            one.offices.get_countries()
            two.offices.get_countries()
        assert api.calls["getCountries"] == 2

    def test_shared_clock_drives_expiry(self, http_client, api) -> None:
        clock = FakeClock()
        config = ClientConfig(cache={"enabled": True, "ttl_ms": 100})
        with EcontClient(config, http_client=http_client, store=MemoryStore(clock), clock=clock) as client:
            client.offices.get_countries()
            clock.advance(99)
            client.offices.get_countries()
            clock.advance(1)
            client.offices.get_countries()
        assert api.calls["getCountries"] == 2

    def test_clock_defaults_to_store_clock(self, http_client, api) -> None:
        clock = FakeClock()
        config = ClientConfig(cache={"enabled": True, "ttl_ms": 100})
        with EcontClient(config, http_client=http_client, store=MemoryStore(clock)) as client:
            client.offices.get_countries()
            clock.advance(99)
            assert client.cache.get("countries").source == DataSource.CACHE
            clock.advance(1)
            client.offices.get_countries()
        assert api.calls["getCountries"] == 2


class TestCacheOperations:
    def test_export_then_offline_lookups(self, http_client, api) -> None:
        with _client(http_client) as client:
            status = client.export_all_data()
            assert status.state == ExportState.COMPLETE
            assert api.calls["getStreets"] == 2

            streets = client.offices.get_streets(42)
            assert [s.id for s in streets] == [420]
            assert client.cache.get("offices").source == DataSource.CACHE
            assert api.calls["getStreets"] == 2

            report = client.get_cache_status()
            assert report.complete
            assert [e.key for e in report.entries] == [
                "cities",
                "countries",
                "offices",
                "streets:41",
                "streets:42",
            ]

    def test_export_failure_surfaces_as_aborted(self, http_client, api) -> None:
        api.fail.add("getOffices")
        with _client(http_client) as client:
            with pytest.raises(ExportAbortedError) as exc_info:
                client.export_all_data()
            assert exc_info.value.step == "offices"
            assert "getOffices failed" in str(exc_info.value)
            assert not client.get_cache_status().complete

    def test_clear_cache(self, http_client, api) -> None:
        with _client(http_client) as client:
            client.offices.get_countries()
            client.clear_cache()
            assert client.get_cache_status().entries == []
            client.offices.get_countries()
        assert api.calls["getCountries"] == 2

    def test_export_requires_enabled_cache(self, http_client) -> None:
        with EcontClient(http_client=http_client) as client:
            with pytest.raises(CacheDisabledError):
                client.export_all_data()
