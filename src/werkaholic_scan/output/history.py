import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from ..models.scan_result import ScanResult
from ..sources.frames import Frame

logger = logging.getLogger(__name__)


@dataclass
class HistoryEntry:
    id: str
    date: str
    image: str
    trigger: str
    analysis: ScanResult


class HistoryWriter:
    """Append accepted scan results to a JSON-lines history file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def append(self, result: ScanResult, frame: Frame, trigger: str) -> HistoryEntry:
        entry = HistoryEntry(
            id=uuid.uuid4().hex,
            date=datetime.now(timezone.utc).isoformat(),
            image=frame.name,
            trigger=trigger,
            analysis=result,
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        record = {
            "id": entry.id,
            "date": entry.date,
            "image": entry.image,
            "trigger": entry.trigger,
            "analysis": result.to_payload(),
        }
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False) + "\n")
        logger.debug(f"History entry {entry.id} written to {self.path}")
        return entry


def load_history(path: str | Path) -> list[HistoryEntry]:
    filepath = Path(path)
    if not filepath.exists():
        return []

    entries = []
    with open(filepath, encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            data = json.loads(line)
            entries.append(
                HistoryEntry(
                    id=data["id"],
                    date=data["date"],
                    image=data.get("image", ""),
                    trigger=data.get("trigger", "auto"),
                    analysis=ScanResult.from_payload(data["analysis"]),
                )
            )
    return entries
