import argparse
import asyncio
import json

from conftest import FakeClassifier, make_result
from werkaholic_scan import cli
from werkaholic_scan.errors import RateLimitedError


def _args(tmp_path, **overrides):
    settings = tmp_path / "settings.json"
    settings.write_text(
        json.dumps(
            {
                "classifier": "mock",
                "quota_path": str(tmp_path / "quota.json"),
                "history_path": str(tmp_path / "history.jsonl"),
                "dwell_ms": 10,
                "duplicate_signal_ms": 10,
            }
        )
    )
    values = dict(
        frames=None,
        image=None,
        manual=False,
        duration=None,
        classifier=None,
        interval_ms=None,
        settings=str(settings),
        user="tester",
        plan=None,
        no_cache=True,
        verbose=False,
    )
    values.update(overrides)
    return argparse.Namespace(**values)


def _photo(tmp_path):
    path = tmp_path / "bohrmaschine.jpg"
    path.write_bytes(b"\xff\xd8jpeg")
    return path


def test_image_upload_writes_history_and_quota(tmp_path, monkeypatch):
    monkeypatch.setattr(cli, "build_classifier", lambda *a, **kw: FakeClassifier(make_result()))
    code = asyncio.run(cli.run(_args(tmp_path, image=str(_photo(tmp_path)))))

    assert code == 0
    history = (tmp_path / "history.jsonl").read_text(encoding="utf-8").splitlines()
    assert json.loads(history[0])["trigger"] == "upload"
    quota = json.loads((tmp_path / "quota.json").read_text(encoding="utf-8"))
    assert quota["tester"]["scansUsed"] == 1


def test_auto_scan_runs_for_duration(tmp_path, monkeypatch):
    classifier = FakeClassifier(make_result())
    monkeypatch.setattr(cli, "build_classifier", lambda *a, **kw: classifier)
    args = _args(tmp_path, frames=str(_photo(tmp_path)), duration=0.05, interval_ms=10)

    assert asyncio.run(cli.run(args)) == 0
    assert classifier.calls >= 1


def test_rate_limit_ends_session_with_halt_code(tmp_path, monkeypatch):
    classifier = FakeClassifier(error=RateLimitedError("429"))
    monkeypatch.setattr(cli, "build_classifier", lambda *a, **kw: classifier)
    args = _args(tmp_path, frames=str(_photo(tmp_path)), interval_ms=10)

    assert asyncio.run(cli.run(args)) == cli.EXIT_HALTED


def test_pro_plan_flag_is_stored(tmp_path, monkeypatch):
    monkeypatch.setattr(cli, "build_classifier", lambda *a, **kw: FakeClassifier(make_result()))
    args = _args(tmp_path, frames=str(_photo(tmp_path)), manual=True, plan="pro")

    assert asyncio.run(cli.run(args)) == 0
    quota = json.loads((tmp_path / "quota.json").read_text(encoding="utf-8"))
    assert quota["tester"]["plan"] == "pro"
    assert quota["tester"]["scansUsed"] == 1
