"""Tests for CacheManager read-through behaviour, status and clearing."""

from __future__ import annotations

import threading

import pytest

from conftest import FakeClock, FakeFetcher, SAMPLE_COUNTRIES
from econt.cache.manager import CacheManager
from econt.cache.resolver import encode_records
from econt.cache.store import MemoryStore
from econt.exceptions import (
    CacheDisabledError,
    ConnectionError_,
    InvalidFilterCriteriaError,
    InvalidUsageError,
    ServerError,
)
from econt.models import CacheConfig, Country, DataSource, ExportState, ExportStatus, Office


def _manager(store, fetcher, clock, **cache) -> CacheManager:
    config = CacheConfig(**{"enabled": True, "ttl_ms": 1_000, **cache})
    return CacheManager(store, fetcher, config, clock=clock)


@pytest.fixture
def manager(memory_store: MemoryStore, fetcher: FakeFetcher, clock: FakeClock) -> CacheManager:
    return _manager(memory_store, fetcher, clock)


# ------------------------------------------------------------------ #
# Read-through
# ------------------------------------------------------------------ #


class TestReadThrough:
    def test_miss_fetches_and_stores(self, manager, fetcher, memory_store) -> None:
        result = manager.get("countries")
        assert result.source == DataSource.API
        assert not result.stale
        assert result.records == SAMPLE_COUNTRIES
        assert fetcher.count("countries") == 1
        assert memory_store.read("countries") is not None

    def test_hit_does_not_fetch(self, manager, fetcher) -> None:
        manager.get("countries")
        result = manager.get("countries")
        assert result.source == DataSource.CACHE
        assert result.records == SAMPLE_COUNTRIES
        assert fetcher.count("countries") == 1

    def test_ttl_boundary(self, manager, fetcher, clock) -> None:
        manager.get("countries")
        clock.now = 999
        assert manager.get("countries").source == DataSource.CACHE
        assert fetcher.count("countries") == 1

        clock.now = 1_001
        assert manager.get("countries").source == DataSource.API
        assert fetcher.count("countries") == 2

    def test_preloaded_entry_served_until_expiry(self, memory_store, clock) -> None:
        """Five countries written at t=0 with TTL 1000ms."""
        countries = [Country(code3=f"C{i:02d}", name=f"Country {i}") for i in range(5)]
        fetcher = FakeFetcher(countries=countries)
        manager = _manager(memory_store, fetcher, clock)
        memory_store.write("countries", encode_records(countries), ttl_ms=1_000)

        clock.now = 500
        result = manager.get("countries")
        assert result.records == countries
        assert fetcher.calls == []

        clock.now = 1_500
        result = manager.get("countries")
        assert result.source == DataSource.API
        assert result.records == countries
        assert fetcher.count("countries") == 1

    def test_streets_keys_are_independent(self, manager, fetcher) -> None:
        manager.get("streets:41")
        manager.get("streets:42")
        manager.get("streets:41")
        assert fetcher.calls == ["streets:41", "streets:42"]

    def test_unknown_key_raises(self, manager, fetcher) -> None:
        with pytest.raises(InvalidUsageError):
            manager.get("parcels")
        with pytest.raises(InvalidUsageError):
            manager.get("streets")
        assert fetcher.calls == []


# ------------------------------------------------------------------ #
# Filtering
# ------------------------------------------------------------------ #


class TestFiltering:
    def test_filter_on_stored_entry(self, memory_store, fetcher, clock) -> None:
        """Ten BGR and five other offices; only the BGR ones, in order."""
        offices = [
            Office(code=str(i), name=f"Office {i}", country_code="BGR" if i < 10 else "ROU")
            for i in range(15)
        ]
        offices = offices[::2] + offices[1::2]
        memory_store.write("offices", encode_records(offices), ttl_ms=1_000)
        manager = _manager(memory_store, fetcher, clock)

        result = manager.get("offices", {"country_code": "BGR"})
        assert result.source == DataSource.CACHE
        assert len(result.records) == 10
        assert result.records == [o for o in offices if o.country_code == "BGR"]
        assert fetcher.calls == []

    def test_same_result_from_api_and_cache(self, manager) -> None:
        criteria = {"country_code": "BGR", "city_id": 41}
        fetched = manager.get("offices", criteria)
        cached = manager.get("offices", criteria)
        assert fetched.source == DataSource.API
        assert cached.source == DataSource.CACHE
        assert fetched.records == cached.records
        assert [o.code for o in cached.records] == ["1000", "1001"]

    def test_whole_dataset_stored_regardless_of_filter(self, manager, memory_store) -> None:
        manager.get("offices", {"country_code": "ROU"})
        assert len(memory_store.read("offices").payload) == 4

    def test_invalid_criteria_raise_before_fetch(self, manager, fetcher) -> None:
        with pytest.raises(InvalidFilterCriteriaError):
            manager.get("offices", {"zip": "1000"})
        assert fetcher.calls == []


# ------------------------------------------------------------------ #
# Forced refresh
# ------------------------------------------------------------------ #


class TestForceRefresh:
    def test_fetches_even_when_fresh(self, manager, fetcher) -> None:
        manager.get("countries")
        result = manager.get("countries", force_refresh=True)
        assert result.source == DataSource.API
        assert fetcher.count("countries") == 2

    def test_overwrites_stored_entry(self, manager, fetcher, memory_store, clock) -> None:
        manager.get("countries")
        fetcher.countries = SAMPLE_COUNTRIES[:1]
        clock.advance(100)

        manager.get("countries", force_refresh=True)
        entry = memory_store.read("countries")
        assert len(entry.payload) == 1
        assert entry.fetched_at == 100
        assert manager.get("countries").records == SAMPLE_COUNTRIES[:1]


# ------------------------------------------------------------------ #
# Refresh failures
# ------------------------------------------------------------------ #


class TestRefreshFailure:
    def test_miss_failure_propagates(self, manager, fetcher) -> None:
        fetcher.failures["countries"] = ConnectionError_("timeout")
        with pytest.raises(ConnectionError_):
            manager.get("countries")

    def test_stale_failure_propagates_by_default(self, manager, fetcher, clock) -> None:
        manager.get("countries")
        clock.advance(5_000)
        fetcher.failures["countries"] = ServerError("HTTP 503")
        with pytest.raises(ServerError):
            manager.get("countries")

    def test_serve_stale_on_error(self, memory_store, fetcher, clock) -> None:
        manager = _manager(memory_store, fetcher, clock, serve_stale_on_error=True)
        manager.get("countries")
        clock.advance(5_000)
        fetcher.failures["countries"] = ConnectionError_("timeout")

        result = manager.get("countries")
        assert result.stale
        assert result.source == DataSource.CACHE
        assert result.records == SAMPLE_COUNTRIES

    def test_serve_stale_still_fails_on_miss(self, memory_store, fetcher, clock) -> None:
        manager = _manager(memory_store, fetcher, clock, serve_stale_on_error=True)
        fetcher.failures["countries"] = ConnectionError_("timeout")
        with pytest.raises(ConnectionError_):
            manager.get("countries")

    def test_forced_refresh_never_serves_stale(self, memory_store, fetcher, clock) -> None:
        manager = _manager(memory_store, fetcher, clock, serve_stale_on_error=True)
        manager.get("countries")
        fetcher.failures["countries"] = ConnectionError_("timeout")
        with pytest.raises(ConnectionError_):
            manager.get("countries", force_refresh=True)

    def test_failed_refresh_leaves_entry_untouched(self, manager, fetcher, memory_store, clock) -> None:
        manager.get("countries")
        clock.advance(5_000)
        fetcher.failures["countries"] = ConnectionError_("timeout")
        with pytest.raises(ConnectionError_):
            manager.get("countries")
        assert memory_store.read("countries").fetched_at == 0


# ------------------------------------------------------------------ #
# Corrupt entries
# ------------------------------------------------------------------ #


class TestCorruptRecovery:
    def test_undecodable_record_is_refetched(self, manager, fetcher, memory_store) -> None:
        memory_store._set_raw("countries", {"payload": "garbage"})
        result = manager.get("countries")
        assert result.source == DataSource.API
        assert fetcher.count("countries") == 1
        assert memory_store.read("countries") is not None

    def test_invalid_payload_records_are_refetched(self, manager, fetcher, memory_store) -> None:
        memory_store.write("cities", [{"name": "no id"}], ttl_ms=1_000)
        result = manager.get("cities")
        assert result.source == DataSource.API
        assert fetcher.count("cities") == 1

    def test_truncated_disk_value_is_refetched(self, disk_store, fetcher, clock) -> None:
        payload = [{"code3": f"C{i:04d}", "name": "Държава " * 8} for i in range(2_000)]
        disk_store.write("countries", payload, ttl_ms=1_000)
        [value_file] = disk_store._directory.rglob("*.val")
        value_file.write_bytes(value_file.read_bytes()[:100])

        result = _manager(disk_store, fetcher, clock).get("countries")
        assert result.source == DataSource.API
        assert result.records == SAMPLE_COUNTRIES
        assert fetcher.count("countries") == 1
        assert disk_store.read("countries").payload == encode_records(SAMPLE_COUNTRIES)


# ------------------------------------------------------------------ #
# Concurrency
# ------------------------------------------------------------------ #


class TestConcurrency:
    def test_concurrent_misses_fetch_once(self, memory_store, clock) -> None:
        started = threading.Event()
        release = threading.Event()

        class SlowFetcher(FakeFetcher):
            def fetch_countries(self):
                started.set()
                release.wait(timeout=5)
                return super().fetch_countries()

        fetcher = SlowFetcher()
        manager = _manager(memory_store, fetcher, clock)
        results = []

        def _worker() -> None:
            results.append(manager.get("countries"))

        first = threading.Thread(target=_worker)
        first.start()
        assert started.wait(timeout=5)
        second = threading.Thread(target=_worker)
        second.start()
        release.set()
        first.join(timeout=5)
        second.join(timeout=5)

        assert fetcher.count("countries") == 1
        assert len(results) == 2
        assert results[0].records == results[1].records


# ------------------------------------------------------------------ #
# Status and clear
# ------------------------------------------------------------------ #


class TestStatusAndClear:
    def test_status_of_empty_cache(self, manager) -> None:
        report = manager.get_cache_status()
        assert report.enabled
        assert report.entries == []
        assert report.export.state == ExportState.NEVER
        assert not report.complete

    def test_status_lists_entries(self, manager, clock) -> None:
        manager.get("countries")
        clock.advance(1_500)
        manager.get("streets:41")

        report = manager.get_cache_status()
        assert [e.key for e in report.entries] == ["countries", "streets:41"]
        assert report.entry("countries").expired
        assert not report.entry("streets:41").expired
        assert report.entry("offices") is None

    def test_status_never_fetches(self, manager, fetcher) -> None:
        manager.get_cache_status()
        assert fetcher.calls == []

    def test_clear_all(self, manager, fetcher) -> None:
        manager.get("countries")
        manager.get("offices")
        manager.clear_cache()

        assert manager.get_cache_status().entries == []
        manager.get("countries")
        assert fetcher.count("countries") == 2

    def test_clear_single_key(self, manager, fetcher) -> None:
        manager.get("countries")
        manager.get("offices")
        manager.clear_cache("offices")

        report = manager.get_cache_status()
        assert [e.key for e in report.entries] == ["countries"]
        manager.get("offices")
        assert fetcher.count("offices") == 2

    def test_clear_single_key_downgrades_complete_export(self, manager, memory_store) -> None:
        memory_store.write_export_status(
            ExportStatus(state=ExportState.COMPLETE, completed_steps=["countries"])
        )
        manager.clear_cache("countries")
        assert memory_store.read_export_status().state == ExportState.INCOMPLETE

    def test_clear_invalid_key(self, manager) -> None:
        with pytest.raises(InvalidUsageError):
            manager.clear_cache("parcels")


# ------------------------------------------------------------------ #
# Disabled cache
# ------------------------------------------------------------------ #


class TestDisabled:
    @pytest.fixture
    def disabled(self, memory_store, fetcher, clock) -> CacheManager:
        return CacheManager(memory_store, fetcher, CacheConfig(enabled=False), clock=clock)

    def test_always_fetches(self, disabled, fetcher, memory_store) -> None:
        disabled.get("countries")
        result = disabled.get("countries")
        assert result.source == DataSource.API
        assert fetcher.count("countries") == 2
        assert memory_store.keys() == []

    def test_criteria_forwarded_and_applied(self, disabled, fetcher) -> None:
        result = disabled.get("offices", {"country_code": "ROU"})
        assert [o.code for o in result.records] == ["5000"]
        assert fetcher.criteria[-1] == {"country_code": "ROU"}

    def test_works_without_store(self, fetcher, clock) -> None:
        manager = CacheManager(None, fetcher, CacheConfig(), clock=clock)
        assert not manager.enabled
        assert manager.get("cities").records

    def test_status_reports_disabled(self, disabled) -> None:
        report = disabled.get_cache_status()
        assert not report.enabled
        assert report.entries == []

    def test_clear_is_noop(self, disabled) -> None:
        disabled.clear_cache()
        disabled.clear_cache("countries")

    def test_export_raises(self, disabled) -> None:
        with pytest.raises(CacheDisabledError):
            disabled.export_all()
