"""Shared fixtures: a throwaway SQLite store and a fake HTTP session that
answers through the in-memory sheet backend."""

from __future__ import annotations

import json
import time
from datetime import date

import pytest

from invoicify import config
from invoicify.api import APIClient
from invoicify.database import Database
from invoicify.service import DataService
from invoicify.sheets import SheetBackend

SHEET_URL = "https://script.google.com/macros/s/test-deployment/exec"


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "") -> None:
        self.status_code = status_code
        self.text = text

    def json(self):
        return json.loads(self.text)


class FakeSession:
    """Stands in for requests.Session; routes POST bodies to a SheetBackend."""

    def __init__(self, backend: SheetBackend | None = None) -> None:
        self.headers: dict = {}
        self.backend = backend or SheetBackend()
        self.calls: list[dict] = []
        self.fail_with: Exception | None = None
        self.response: FakeResponse | None = None
        self.delay = 0.0

    def post(self, url, data=None, headers=None, timeout=None, allow_redirects=True):
        body = json.loads(data)
        self.calls.append({"url": url, "body": body, "headers": headers, "timeout": timeout})
        if self.delay:
            time.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        if self.response is not None:
            return self.response
        return FakeResponse(200, json.dumps(self.backend.handle(body)))

    def bodies(self, action: str | None = None) -> list[dict]:
        return [c["body"] for c in self.calls if action is None or c["body"]["action"] == action]


class Clock:
    """Deterministic timestamps, one second apart."""

    def __init__(self) -> None:
        self.ticks = 0

    def __call__(self) -> str:
        self.ticks += 1
        return f"2024-03-01T10:00:{self.ticks:02d}.000Z"


@pytest.fixture(autouse=True)
def _no_env_sheet_url(monkeypatch):
    monkeypatch.setitem(config.DEFAULT_SETTINGS, "googleSheetUrl", "")


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "invoicify.db", backup_dir=tmp_path / "backups")
    database.connect()
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def api(session):
    return APIClient(timeout=5, session=session)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def service(db, api, clock):
    return DataService(db, api, clock=clock, today=lambda: date(2024, 3, 1))


@pytest.fixture
def online(service):
    """Service with a sheet URL configured."""
    settings = service.get_settings()
    settings["googleSheetUrl"] = SHEET_URL
    service.save_settings(settings)
    return service


@pytest.fixture
def events(service):
    seen: list[bool] = []
    service.add_sync_listener(seen.append)
    return seen


@pytest.fixture
def warnings(service):
    seen: list[str] = []
    service.add_warning_listener(seen.append)
    return seen
