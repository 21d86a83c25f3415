import asyncio

import pytest

from werkaholic_scan.config import Settings
from werkaholic_scan.controller.scan_loop import ScanLoopController
from werkaholic_scan.models.scan_result import Condition, ScanResult
from werkaholic_scan.quota.store import InMemoryQuotaStore
from werkaholic_scan.sources.frames import Frame, StaticFrameSource


def make_result(title: str = "Bohrmaschine Bosch", detected: bool = True) -> ScanResult:
    return ScanResult(
        detected=detected,
        title=title,
        price_estimate="40€ - 60€",
        condition=Condition.GOOD,
        category="Werkzeuge",
        description="Schlagbohrmaschine mit Koffer.",
        keywords=("Bohrmaschine", "Bosch"),
        reasoning="Gängiges Modell.",
    )


class FakeClassifier:
    """Returns queued results (the last one repeats) or raises `error`."""

    def __init__(self, *results: ScanResult, error: Exception | None = None):
        self.results = list(results) or [make_result()]
        self.error = error
        self.calls = 0
        self.gate: asyncio.Event | None = None

    async def classify(self, frame):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]


class FakeClock:
    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def settings():
    # Long interval so only explicit tick() calls capture; short timers so tests finish fast
    return Settings(
        scan_interval_ms=60_000,
        dwell_ms=20,
        duplicate_signal_ms=20,
        error_clear_ms=20,
    )


@pytest.fixture
def frame():
    return Frame(data=b"\xff\xd8fake-jpeg", media_type="image/jpeg", name="bohrmaschine.jpg")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryQuotaStore()


@pytest.fixture
def make_controller(settings, frame, clock, store):
    def factory(classifier, **overrides):
        return ScanLoopController(
            classifier=classifier,
            source=overrides.pop("source", StaticFrameSource([frame])),
            quota_store=overrides.pop("quota_store", store),
            user_id=overrides.pop("user_id", "user-1"),
            settings=overrides.pop("settings", settings),
            clock=overrides.pop("clock", clock),
        )

    return factory
