"""Shared test fixtures for econt.

Provides a controllable clock, an in-memory nomenclature fetcher with call
recording and failure injection, store fixtures, isolated config
environments, output state management, and a CLI runner.  These fixtures
are automatically discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest

from econt.cache.fetcher import NomenclatureFetcher
from econt.cache.filters import Criteria
from econt.cache.keys import CITIES, COUNTRIES, OFFICES, streets_key
from econt.cache.store import DiskStore, MemoryStore
from econt.models import City, Country, Office, Street
from econt.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Sample nomenclature data
# ---------------------------------------------------------------------------


SAMPLE_COUNTRIES = [
    Country(id=1033, code2="BG", code3="BGR", name="България", name_en="Bulgaria", is_eu=True),
    Country(id=1126, code2="RO", code3="ROU", name="Румъния", name_en="Romania", is_eu=True),
    Country(id=1064, code2="GR", code3="GRC", name="Гърция", name_en="Greece", is_eu=True),
]

SAMPLE_CITIES = [
    City(id=41, country_code="BGR", post_code="1000", name="София", name_en="Sofia"),
    City(id=42, country_code="BGR", post_code="9000", name="Варна", name_en="Varna"),
    City(id=100, country_code="ROU", post_code="010011", name="Букурещ", name_en="Bucharest"),
]

SAMPLE_OFFICES = [
    Office(code="1000", name="София Център", city_id=41, city_name="София", country_code="BGR"),
    Office(code="1001", name="София АПС", city_id=41, city_name="София", country_code="BGR", is_aps=True),
    Office(code="9000", name="Варна Център", city_id=42, city_name="Варна", country_code="BGR"),
    Office(code="5000", name="Bucuresti", city_id=100, city_name="Букурещ", country_code="ROU"),
]

SAMPLE_STREETS = {
    41: [
        Street(id=1, city_id=41, name="бул. Витоша", name_en="Vitosha Blvd"),
        Street(id=2, city_id=41, name="ул. Раковски", name_en="Rakovski St"),
    ],
    42: [Street(id=3, city_id=42, name="бул. Приморски", name_en="Primorski Blvd")],
    100: [],
}


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced clock in epoch milliseconds."""

    def __init__(self, start: int = 0) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeFetcher(NomenclatureFetcher):
    """In-memory fetcher that records every call by cache key.

    Set ``failures[key]`` to an exception instance to make the fetch for
    that key raise it.
    """

    def __init__(
        self,
        countries: Optional[list[Country]] = None,
        cities: Optional[list[City]] = None,
        offices: Optional[list[Office]] = None,
        streets: Optional[dict[int, list[Street]]] = None,
    ) -> None:
        self.countries = list(SAMPLE_COUNTRIES if countries is None else countries)
        self.cities = list(SAMPLE_CITIES if cities is None else cities)
        self.offices = list(SAMPLE_OFFICES if offices is None else offices)
        self.streets = dict(SAMPLE_STREETS if streets is None else streets)
        self.calls: list[str] = []
        self.criteria: list[Optional[Criteria]] = []
        self.failures: dict[str, Exception] = {}

    def _record(self, key: str, criteria: Optional[Criteria] = None) -> None:
        self.calls.append(key)
        self.criteria.append(criteria)
        exc = self.failures.get(key)
        if exc is not None:
            raise exc

    def count(self, key: str) -> int:
        return self.calls.count(key)

    def fetch_countries(self) -> list[Country]:
        self._record(COUNTRIES)
        return list(self.countries)

    def fetch_cities(self, criteria: Optional[Criteria] = None) -> list[City]:
        self._record(CITIES, criteria)
        return list(self.cities)

    def fetch_offices(self, criteria: Optional[Criteria] = None) -> list[Office]:
        self._record(OFFICES, criteria)
        return list(self.offices)

    def fetch_streets(self, city_id: int) -> list[Street]:
        self._record(streets_key(city_id))
        return list(self.streets.get(city_id, []))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def memory_store(clock: FakeClock) -> MemoryStore:
    return MemoryStore(clock=clock)


@pytest.fixture
def disk_store(tmp_path: Path, clock: FakeClock) -> DiskStore:
    """A DiskStore in tmp_path, closed after the test."""
    store = DiskStore(tmp_path / "store", clock=clock)
    yield store
    store.close()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path so that tests never touch real user
    config. Clears all ECONT_* environment variables and changes
    the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "ECONT_USERNAME",
        "ECONT_PASSWORD",
        "ECONT_ENVIRONMENT",
        "ECONT_BASE_URL",
        "ECONT_CACHE_ENABLED",
        "ECONT_CACHE_TTL_MS",
        "ECONT_CACHE_DIR",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
