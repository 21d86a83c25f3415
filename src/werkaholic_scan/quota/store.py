import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Protocol

from ..models.quota import Plan, QuotaState, next_reset

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuotaStore(Protocol):
    def get(self, user_id: str) -> QuotaState: ...

    def increment(self, user_id: str) -> QuotaState: ...


class InMemoryQuotaStore:
    """Per-user daily scan counters kept in memory."""

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._clock = clock or _utcnow
        self._states: dict[str, QuotaState] = {}

    def _load(self, user_id: str) -> QuotaState | None:
        return self._states.get(user_id)

    def _save(self, user_id: str, state: QuotaState) -> None:
        self._states[user_id] = state

    def _current(self, user_id: str) -> QuotaState:
        now = self._clock()
        state = self._load(user_id)
        if state is None:
            state = QuotaState.fresh(now)
            self._save(user_id, state)
        elif now >= state.reset_date:
            logger.info(f"Quota period for '{user_id}' ended, resetting {state.scans_used} scans")
            state = QuotaState(plan=state.plan, scans_used=0, reset_date=next_reset(now))
            self._save(user_id, state)
        return state

    def get(self, user_id: str) -> QuotaState:
        state = self._current(user_id)
        return QuotaState(state.plan, state.scans_used, state.reset_date)

    def increment(self, user_id: str) -> QuotaState:
        state = self._current(user_id)
        updated = QuotaState(state.plan, state.scans_used + 1, state.reset_date)
        self._save(user_id, updated)
        logger.debug(f"Scan counter for '{user_id}': {state.scans_used} -> {updated.scans_used}")
        return self.get(user_id)

    def set_plan(self, user_id: str, plan: Plan) -> QuotaState:
        state = self._current(user_id)
        self._save(user_id, QuotaState(plan, state.scans_used, state.reset_date))
        return self.get(user_id)


class JsonQuotaStore(InMemoryQuotaStore):
    """Quota counters persisted to a single JSON document keyed by user id."""

    def __init__(self, path: str | Path, clock: Callable[[], datetime] | None = None):
        super().__init__(clock=clock)
        self.path = Path(path)

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Quota file {self.path} does not hold a JSON object")
        return data

    def _load(self, user_id: str) -> QuotaState | None:
        entry = self._read_all().get(user_id)
        if not entry:
            return None
        try:
            return QuotaState.from_dict(entry)
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"Malformed quota entry for '{user_id}' in {self.path}") from e

    def _save(self, user_id: str, state: QuotaState) -> None:
        data = self._read_all()
        data[user_id] = state.to_dict()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            os.unlink(tmp)
            raise
