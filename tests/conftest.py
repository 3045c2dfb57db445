"""pytest configuration and fixtures for pyqt-entitylist tests."""

import asyncio

import pytest
from PyQt6.QtCore import QCoreApplication

from pyqt_entitylist.protocols import (
    EntityConfig,
    EntityEngineConfig,
    register_notifier,
    register_translator,
    set_engine_config,
)
from pyqt_entitylist.services import EntityListEngine, MemoryPreferenceStore


@pytest.fixture(scope="session")
def qapp():
    """Create Qt application instance for tests."""
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app
    # Don't quit - may cause issues with other tests


@pytest.fixture(autouse=True)
def reset_globals():
    yield
    set_engine_config(None)
    register_notifier(None)
    register_translator(None)


class _Response:
    def __init__(self, status, data=None):
        self.status = status
        self.data = data


class HttpError(Exception):
    """SDK-style error carrying an HTTP response."""

    def __init__(self, status, message=""):
        super().__init__(message)
        self.response = _Response(status)


def rate_limited():
    return HttpError(429)


class FakeSDK:
    """In-memory Entity SDK that counts calls and can be scripted to fail."""

    def __init__(self, items=None, delay=0.0):
        self.items = [dict(item) for item in (items or [])]
        self.delay = delay
        self.list_failures = []      # raised in order before list() succeeds
        self.always_fail = None      # raised by every list() call when set
        self.fail_ids = set()        # delete() fails for these ids
        self.list_calls = 0
        self.sort_hints = []
        self.active = 0
        self.max_active = 0
        self.deleted = []
        self.created = []

    async def list(self, sort_hint=None):
        self.list_calls += 1
        self.sort_hints.append(sort_hint)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            if self.always_fail is not None:
                raise self.always_fail
            if self.list_failures:
                raise self.list_failures.pop(0)
            return [dict(item) for item in self.items]
        finally:
            self.active -= 1

    async def create(self, payload):
        if payload.get("invalid"):
            raise ValueError(f"rejected payload {payload!r}")
        record = {"id": 1000 + len(self.created), **payload}
        self.created.append(record)
        self.items.append(record)
        return record

    async def update(self, item_id, payload):
        for item in self.items:
            if item["id"] == item_id:
                item.update(payload)
                return dict(item)
        raise KeyError(item_id)

    async def delete(self, item_id):
        if item_id in self.fail_ids:
            raise RuntimeError(f"cannot delete {item_id}")
        for item in self.items:
            if item["id"] == item_id:
                self.items.remove(item)
                self.deleted.append(item_id)
                return None
        raise KeyError(item_id)


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class RecordingNotifier:
    def __init__(self):
        self.toasts = []

    def toast(self, toast):
        self.toasts.append(toast)

    @property
    def titles(self):
        return [t.title for t in self.toasts]


def make_items(count, **fields):
    return [
        {"id": i, "name": f"Doctor {i:02d}", "updated_date": f"2024-01-{i:02d}", **fields}
        for i in range(1, count + 1)
    ]


@pytest.fixture
def fast_config():
    return EntityEngineConfig(
        retry_base_delay_ms=1,
        retry_max_delay_ms=4,
        request_cooldown_ms=0,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def sdk():
    return FakeSDK(make_items(25))


@pytest.fixture
def make_engine(fast_config, clock, notifier):
    """Factory building an engine around a FakeSDK with in-memory preferences."""

    def factory(sdk, preferences=None, **config_fields):
        config_fields.setdefault("storage_key", "doctors")
        config_fields.setdefault("entity_name", "Doctor")
        config_fields.setdefault("entity_name_plural", "Doctors")
        return EntityListEngine(
            EntityConfig(entity_sdk=sdk, **config_fields),
            config=fast_config,
            preferences=preferences if preferences is not None else MemoryPreferenceStore(),
            notifier=notifier,
            clock=clock,
        )

    return factory
