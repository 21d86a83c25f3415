import json
from datetime import datetime, timedelta, timezone

import pytest

from werkaholic_scan.models.quota import Plan
from werkaholic_scan.quota.store import InMemoryQuotaStore, JsonQuotaStore


class Now:
    def __init__(self):
        self.value = datetime(2026, 3, 14, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.value


def test_new_user_starts_on_free_plan():
    store = InMemoryQuotaStore(clock=Now())
    state = store.get("anna")
    assert state.plan is Plan.FREE
    assert state.scans_used == 0
    assert state.reset_date == datetime(2026, 3, 15, tzinfo=timezone.utc)


def test_increment_is_per_user():
    store = InMemoryQuotaStore(clock=Now())
    store.increment("anna")
    store.increment("anna")
    store.increment("ben")
    assert store.get("anna").scans_used == 2
    assert store.get("ben").scans_used == 1


def test_counter_resets_after_reset_date():
    now = Now()
    store = InMemoryQuotaStore(clock=now)
    for _ in range(5):
        store.increment("anna")

    now.value += timedelta(hours=16)
    state = store.get("anna")
    assert state.scans_used == 0
    assert state.reset_date == datetime(2026, 3, 16, tzinfo=timezone.utc)


def test_get_returns_a_copy():
    store = InMemoryQuotaStore(clock=Now())
    state = store.get("anna")
    state.scans_used = 99
    assert store.get("anna").scans_used == 0


def test_set_plan_keeps_counter():
    store = InMemoryQuotaStore(clock=Now())
    store.increment("anna")
    state = store.set_plan("anna", Plan.PRO)
    assert state.plan is Plan.PRO
    assert state.scans_used == 1


def test_json_store_persists_between_instances(tmp_path):
    path = tmp_path / "data" / "quota.json"
    now = Now()
    JsonQuotaStore(path, clock=now).increment("anna")
    JsonQuotaStore(path, clock=now).increment("anna")

    assert JsonQuotaStore(path, clock=now).get("anna").scans_used == 2
    stored = json.loads(path.read_text(encoding="utf-8"))
    assert stored["anna"]["plan"] == "free"
    assert stored["anna"]["scansUsed"] == 2
    assert list(tmp_path.joinpath("data").glob("*.tmp")) == []


def test_json_store_missing_file_is_empty(tmp_path):
    store = JsonQuotaStore(tmp_path / "missing.json", clock=Now())
    assert store.get("anna").scans_used == 0


@pytest.mark.parametrize("content", ["{corrupt", "[1, 2]", '{"anna": {"plan": "free"}}'])
def test_json_store_reports_unreadable_file_as_value_error(tmp_path, content):
    path = tmp_path / "quota.json"
    path.write_text(content, encoding="utf-8")
    store = JsonQuotaStore(path, clock=Now())
    with pytest.raises(ValueError):
        store.get("anna")
