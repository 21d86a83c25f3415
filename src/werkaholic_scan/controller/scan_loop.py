import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from ..config import Settings
from ..errors import FailureKind, InvalidTransition, QuotaCeilingReached, classify_failure
from ..matching.duplicate_filter import DuplicateFilter
from ..models.quota import QuotaState
from ..models.scan_result import LastSuccess, ScanResult
from ..sources.frames import Frame

logger = logging.getLogger(__name__)

# User-visible messages
MSG_RATE_LIMITED = "⚠️ API-Limit erreicht. Scanner pausiert."
MSG_LIMIT_WAIT = "API-Limit erreicht. Bitte warten."
MSG_FREE_LIMIT = "Free-Version: {limit} Scans pro Tag erreicht. Upgrade auf Pro für unbegrenzte Scans."
MSG_NOTHING_DETECTED = "Kein Objekt erkannt."
MSG_ANALYSIS_FAILED = "Fehler bei der Analyse."


class LoopState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    QUOTA_EXCEEDED = "quota_exceeded"


class HaltReason(Enum):
    RATE_LIMITED = "rate_limited"
    QUOTA_CEILING = "quota_ceiling"


@dataclass
class LoopStats:
    """Counters for one scanning session."""
    ticks: int = 0
    accepted: int = 0
    duplicates: int = 0
    not_detected: int = 0
    failures: int = 0
    refused: int = 0


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


ResultCallback = Callable[[ScanResult, Frame, str], None]
Listener = Callable[["ScanLoopController"], None]


class ScanLoopController:
    """Fixed-interval capture-and-classify loop with duplicate suppression and a quota gate.

    All state lives here and is changed only from capture results or explicit
    user actions, all on the event loop thread. A single scheduler task fires
    ticks; a tick is skipped, not queued, while a capture is in flight.
    """

    def __init__(
        self,
        classifier,
        source,
        quota_store,
        user_id: str = "local",
        settings: Settings | None = None,
        clock: Callable[[], int] = _monotonic_ms,
    ):
        self.classifier = classifier
        self.source = source
        self.quota_store = quota_store
        self.user_id = user_id
        self.settings = settings or Settings()
        self._clock = clock
        self._duplicates = DuplicateFilter(
            window_ms=self.settings.duplicate_window_ms,
            overlap_threshold=self.settings.duplicate_overlap,
        )

        self._state = LoopState.IDLE
        self._halt_reason: HaltReason | None = None
        self._is_analyzing = False
        self._preview: ScanResult | None = None
        self._duplicate_flag = False
        self._error: str | None = None
        self._last_success: LastSuccess | None = None
        self._quota: QuotaState | None = None
        # Bumped on teardown so late classifier results from an earlier run are dropped
        self._generation = 0

        self._scheduler: asyncio.Task | None = None
        self._ticks: set[asyncio.Task] = set()
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._listeners: list[Listener] = []
        self._result_callbacks: list[ResultCallback] = []
        self.stats = LoopStats()

    # ── Read-only view ──

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def halt_reason(self) -> HaltReason | None:
        return self._halt_reason

    @property
    def is_analyzing(self) -> bool:
        return self._is_analyzing

    @property
    def preview(self) -> ScanResult | None:
        return self._preview

    @property
    def duplicate_flag(self) -> bool:
        return self._duplicate_flag

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def last_success(self) -> LastSuccess | None:
        return self._last_success

    @property
    def quota(self) -> QuotaState | None:
        return self._quota

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def on_result(self, callback: ResultCallback):
        """Register a callback receiving (result, frame, trigger) for every accepted result."""
        self._result_callbacks.append(callback)

    def _notify(self):
        for listener in list(self._listeners):
            listener(self)

    def _set_state(self, state: LoopState):
        if state is not self._state:
            logger.info(f"Scan loop {self._state.value} -> {state.value}")
            self._state = state
        self._notify()

    # ── User actions ──

    async def start(self):
        if self._state not in (LoopState.IDLE, LoopState.PAUSED):
            raise InvalidTransition(f"Cannot start scan loop from {self._state.value}")
        self._refresh_quota()
        self._set_state(LoopState.RUNNING)
        self._resume_scheduler()

    def pause(self):
        if self._state is not LoopState.RUNNING:
            raise InvalidTransition(f"Cannot pause scan loop from {self._state.value}")
        self._stop_scheduler()
        self._set_state(LoopState.PAUSED)

    def resume(self):
        if self._state is not LoopState.PAUSED:
            raise InvalidTransition(f"Cannot resume scan loop from {self._state.value}")
        self._set_state(LoopState.RUNNING)
        self._resume_scheduler()

    def toggle_pause(self):
        if self._state is LoopState.PAUSED:
            self.resume()
        else:
            self.pause()

    def reset(self):
        """Clear a halt after user acknowledgement. The loop returns to IDLE."""
        if self._state not in (LoopState.QUOTA_EXCEEDED, LoopState.IDLE):
            raise InvalidTransition(f"Cannot reset scan loop from {self._state.value}")
        self._cancel_timer("error")
        self._error = None
        self._halt_reason = None
        self._refresh_quota()
        self._set_state(LoopState.IDLE)

    def stop(self):
        """Tear down timers. In-flight classifier calls finish but their results are dropped."""
        self._stop_scheduler()
        for name in list(self._timers):
            self._cancel_timer(name)
        self._generation += 1
        self._preview = None
        self._duplicate_flag = False
        if self._state in (LoopState.RUNNING, LoopState.PAUSED):
            self._set_state(LoopState.IDLE)
        else:
            self._notify()

    async def wait_idle(self):
        """Wait for in-flight automatic captures to complete."""
        if self._ticks:
            await asyncio.gather(*list(self._ticks))

    # ── Scheduling ──

    def _resume_scheduler(self):
        # A pending dwell or duplicate timer restarts the scheduler when it fires
        if self._preview is None and not self._duplicate_flag:
            self._start_scheduler()

    def _start_scheduler(self):
        if self._scheduler is not None and not self._scheduler.done():
            return
        self._scheduler = asyncio.create_task(self._run_scheduler())

    def _stop_scheduler(self):
        if self._scheduler is not None:
            self._scheduler.cancel()
            self._scheduler = None

    async def _run_scheduler(self):
        interval = self.settings.scan_interval_ms / 1000
        while True:
            await asyncio.sleep(interval)
            self._dispatch_tick()

    def _dispatch_tick(self):
        if self._state is not LoopState.RUNNING or self._is_analyzing:
            return
        task = asyncio.create_task(self.tick())
        self._ticks.add(task)
        task.add_done_callback(self._ticks.discard)

    def _schedule(self, name: str, delay_ms: int, callback: Callable[[], None]):
        self._cancel_timer(name)
        loop = asyncio.get_running_loop()
        self._timers[name] = loop.call_later(delay_ms / 1000, self._fire_timer, name, callback)

    def _fire_timer(self, name: str, callback: Callable[[], None]):
        self._timers.pop(name, None)
        callback()

    def _cancel_timer(self, name: str):
        handle = self._timers.pop(name, None)
        if handle is not None:
            handle.cancel()

    # ── Capture paths ──

    async def tick(self) -> ScanResult | None:
        """One automatic capture attempt. Returns the accepted result, if any."""
        if (
            self._state is not LoopState.RUNNING
            or self._is_analyzing
            or self._preview is not None
            or self._duplicate_flag
        ):
            return None
        if not self._passes_quota_gate():
            return None

        frame = self._capture()
        if frame is None:
            return None

        self.stats.ticks += 1
        generation = self._generation
        result, exc = await self._call_classifier(frame)

        if generation != self._generation or self._state is not LoopState.RUNNING:
            logger.debug(f"Discarding capture result, loop is {self._state.value}")
            return None
        if exc is not None:
            self._handle_failure(exc, manual=False)
            return None
        if not result.detected:
            self.stats.not_detected += 1
            logger.debug("No valid item detected, scanning continues")
            return None

        if self._duplicates.is_duplicate(self._last_success, result.title, self._clock()):
            self._suppress_duplicate(result)
            return None

        self._accept(result, frame, "auto")
        self._record_scan()
        return result

    async def capture_manual(self) -> ScanResult | None:
        """User-triggered capture. Skips the duplicate filter and always counts detected results."""
        if self._state is LoopState.QUOTA_EXCEEDED:
            self._error = MSG_LIMIT_WAIT
            self._notify()
            return None
        if self._is_analyzing:
            return None
        if not self._passes_quota_gate():
            return None

        frame = self._capture()
        if frame is None:
            return None

        self._cancel_timer("error")
        self._error = None
        generation = self._generation
        result, exc = await self._call_classifier(frame)

        if generation != self._generation:
            return None
        if exc is not None:
            self._handle_failure(exc, manual=True)
            return None
        if not result.detected:
            self.stats.not_detected += 1
            self._flash_error(MSG_NOTHING_DETECTED)
            return None

        self._record_scan()
        self._accept(result, frame, "manual")
        return result

    async def analyze_image(self, frame: Frame) -> ScanResult | None:
        """One-shot analysis of an uploaded image, outside the dwell cycle."""
        if self._state is LoopState.QUOTA_EXCEEDED:
            self._error = MSG_LIMIT_WAIT
            self._notify()
            return None
        if self._is_analyzing:
            return None
        if not self._passes_quota_gate():
            return None

        result, exc = await self._call_classifier(frame)
        if exc is not None:
            self._handle_failure(exc, manual=True)
            return None

        self._record_scan()
        if result.detected:
            self.stats.accepted += 1
        else:
            self.stats.not_detected += 1
        for callback in list(self._result_callbacks):
            callback(result, frame, "upload")
        return result

    def _capture(self) -> Frame | None:
        try:
            return self.source.capture()
        except OSError as e:
            logger.warning(f"Frame capture failed: {e}")
            return None

    async def _call_classifier(self, frame: Frame) -> tuple[ScanResult | None, Exception | None]:
        self._is_analyzing = True
        self._notify()
        try:
            return await self.classifier.classify(frame), None
        except Exception as e:
            # Every classifier failure is mapped by the caller, none escapes the loop
            return None, e
        finally:
            self._is_analyzing = False
            self._notify()

    # ── Outcomes ──

    def _accept(self, result: ScanResult, frame: Frame, trigger: str):
        self._stop_scheduler()
        self._last_success = LastSuccess(title=result.title, timestamp_ms=self._clock())
        self._preview = result
        self.stats.accepted += 1
        logger.info(f"Accepted {trigger} scan: {result.title} ({result.price_estimate})")
        for callback in list(self._result_callbacks):
            callback(result, frame, trigger)
        self._notify()
        self._schedule("dwell", self.settings.dwell_ms, self._end_dwell)

    def _end_dwell(self):
        self._preview = None
        if self._state is LoopState.RUNNING:
            self._start_scheduler()
        self._notify()

    def _suppress_duplicate(self, result: ScanResult):
        self.stats.duplicates += 1
        logger.info(f"Duplicate detected, skipping '{result.title}'")
        self._stop_scheduler()
        self._duplicate_flag = True
        self._notify()
        self._schedule("duplicate", self.settings.duplicate_signal_ms, self._end_duplicate_signal)

    def _end_duplicate_signal(self):
        self._duplicate_flag = False
        if self._state is LoopState.RUNNING:
            self._start_scheduler()
        self._notify()

    def _handle_failure(self, exc: Exception, manual: bool):
        self.stats.failures += 1
        if classify_failure(exc) is FailureKind.RATE_LIMITED:
            logger.warning(f"Classifier rate limited, halting scan loop: {exc}")
            self._halt(HaltReason.RATE_LIMITED, MSG_RATE_LIMITED)
            return

        logger.warning(f"Scan failed ({'manual' if manual else 'auto'}): {exc}")
        if manual:
            self._flash_error(MSG_ANALYSIS_FAILED)

    def _halt(self, reason: HaltReason, message: str):
        self._stop_scheduler()
        self._halt_reason = reason
        self._cancel_timer("error")
        self._error = message
        self._set_state(LoopState.QUOTA_EXCEEDED)

    def _flash_error(self, message: str):
        self._error = message
        self._notify()
        self._schedule("error", self.settings.error_clear_ms, self._clear_error)

    def _clear_error(self):
        if self._state is not LoopState.QUOTA_EXCEEDED:
            self._error = None
            self._notify()

    # ── Quota ──

    def _refresh_quota(self):
        try:
            self._quota = self.quota_store.get(self.user_id)
        except (OSError, ValueError) as e:
            logger.error(f"Could not read quota for '{self.user_id}': {e}")

    def _check_quota(self):
        if self._quota is None:
            self._refresh_quota()
        if self._quota is None:
            # Unreadable store; captures proceed uncounted
            return
        limit = self.settings.free_scan_limit
        if self._quota.ceiling_reached(limit):
            raise QuotaCeilingReached(
                f"Free plan limit reached for '{self.user_id}' ({self._quota.scans_used}/{limit})"
            )

    def _passes_quota_gate(self) -> bool:
        try:
            self._check_quota()
        except QuotaCeilingReached as e:
            self.stats.refused += 1
            logger.info(str(e))
            self._halt(HaltReason.QUOTA_CEILING, MSG_FREE_LIMIT.format(limit=self.settings.free_scan_limit))
            return False
        return True

    def _record_scan(self):
        try:
            self.quota_store.increment(self.user_id)
            self._refresh_quota()
        except (OSError, ValueError) as e:
            logger.error(f"Could not record scan for '{self.user_id}': {e}")
