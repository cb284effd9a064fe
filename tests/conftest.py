from __future__ import annotations

import importlib
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.resultbridge.domain.exceptions import ProviderExhaustedError, ProviderRequestError
from src.resultbridge.domain.models.media_kind import MediaKind
from src.resultbridge.domain.repositories import ProviderRepository, ResultCacheRepository
from src.resultbridge.infrastructure.memory.cache import InMemoryResultCache


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class StubProvider(ProviderRepository):
    """In-memory provider replacement that records every outbound call."""

    def __init__(self) -> None:
        self.status_payloads: dict[str, Any] = {}
        self.history: dict[str, dict[str, Any]] = {}
        self.live_urls: set[str] = set()
        self.status_calls: list[tuple[str, MediaKind]] = []
        self.history_calls: list[str] = []
        self.probed: list[str] = []

    @property
    def outbound_calls(self) -> int:
        return len(self.status_calls) + len(self.history_calls) + len(self.probed)

    async def query_status(self, task_id: str, kind: MediaKind) -> Any:
        self.status_calls.append((task_id, kind))
        if task_id not in self.status_payloads:
            raise ProviderExhaustedError(
                task_id, ProviderRequestError("https://api.test/status", "Not Found", 404)
            )
        return self.status_payloads[task_id]

    async def find_history_record(self, task_id: str) -> dict[str, Any] | None:
        self.history_calls.append(task_id)
        return self.history.get(task_id)

    async def probe_url(self, url: str) -> bool:
        self.probed.append(url)
        return url in self.live_urls


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> InMemoryResultCache:
    return InMemoryResultCache(ttl_seconds=1800, clock=clock)


@pytest.fixture
def provider() -> StubProvider:
    return StubProvider()


def _patch_inject_instance(
    monkeypatch: pytest.MonkeyPatch,
    cache: ResultCacheRepository,
    provider: ProviderRepository,
) -> Callable[[object], object]:
    """Patch `inject.instance` to return the stub repositories."""
    import inject

    def fake_instance(interface: object) -> object:
        if interface is ResultCacheRepository:
            return cache
        if interface is ProviderRepository:
            return provider
        raise RuntimeError(f"Unexpected dependency request: {interface}")

    monkeypatch.setattr(inject, "instance", fake_instance)
    return fake_instance


@pytest.fixture
def api_client(
    monkeypatch: pytest.MonkeyPatch,
    cache: InMemoryResultCache,
    provider: StubProvider,
):
    """FastAPI test client with services wired to the stub repositories."""
    _patch_inject_instance(monkeypatch, cache, provider)

    # Reload so the module-level services pick up the patched injector.
    routes_module = importlib.reload(
        importlib.import_module("src.resultbridge.presentation.routes")
    )

    app = FastAPI()
    app.include_router(routes_module.router)
    client = TestClient(app)
    return client, cache, provider
