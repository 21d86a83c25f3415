import re

from ..models.scan_result import LastSuccess

_STRIP = re.compile(r"[^a-z0-9äöüß ]")


def normalize_title(title: str) -> str:
    """Lower-case a title and drop everything except letters, digits, umlauts and spaces."""
    return _STRIP.sub("", (title or "").lower()).strip()


def _tokens(normalized: str) -> set[str]:
    return {w for w in normalized.split(" ") if len(w) > 2}


def title_overlap(a: str, b: str) -> float:
    """Share of significant tokens two titles have in common, relative to the larger set."""
    words_a = _tokens(normalize_title(a))
    words_b = _tokens(normalize_title(b))
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / max(len(words_a), len(words_b))


class DuplicateFilter:
    """Suppress automatic scans that repeat the last accepted title within a cooldown window."""

    def __init__(self, window_ms: int = 30000, overlap_threshold: float = 0.6):
        self.window_ms = window_ms
        self.overlap_threshold = overlap_threshold

    def is_duplicate(self, last: LastSuccess | None, title: str, now_ms: int) -> bool:
        if last is None:
            return False
        if now_ms - last.timestamp_ms >= self.window_ms:
            return False

        last_title = normalize_title(last.title)
        new_title = normalize_title(title)
        if last_title == new_title:
            return True

        return title_overlap(last_title, new_title) > self.overlap_threshold
