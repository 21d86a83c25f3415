import hashlib
import logging
import time
from typing import Callable

from ..models.scan_result import ScanResult
from ..sources.frames import Frame

logger = logging.getLogger(__name__)


class CachingClassifier:
    """Reuse classifier results for identical frames within a TTL."""

    def __init__(
        self,
        inner,
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.inner = inner
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, ScanResult]] = {}

    @staticmethod
    def _key(frame: Frame) -> str:
        return hashlib.sha256(frame.data).hexdigest()

    async def classify(self, frame: Frame) -> ScanResult:
        key = self._key(frame)
        entry = self._entries.get(key)
        now = self._clock()
        if entry and now - entry[0] < self.ttl_seconds:
            logger.debug(f"Cache hit for frame {key[:12]}")
            return entry[1]

        result = await self.inner.classify(frame)
        self._prune(now)
        self._entries[key] = (now, result)
        return result

    def _prune(self, now: float):
        expired = [k for k, (stored, _) in self._entries.items() if now - stored >= self.ttl_seconds]
        for k in expired:
            del self._entries[k]
