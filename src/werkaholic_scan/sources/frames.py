import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".gif", ".webp"}


def normalize_media_type(hint: str) -> str:
    """Normalize a content type or file suffix to a vision-supported image type."""
    ct = hint.lower()
    if "png" in ct:
        return "image/png"
    if "gif" in ct:
        return "image/gif"
    if "webp" in ct:
        return "image/webp"
    return "image/jpeg"


@dataclass(frozen=True)
class Frame:
    """An encoded still image handed to the classifier."""
    data: bytes
    media_type: str = "image/jpeg"
    name: str = ""

    @classmethod
    def from_path(cls, path: str | Path) -> "Frame":
        p = Path(path)
        return cls(data=p.read_bytes(), media_type=normalize_media_type(p.suffix), name=p.name)


class FrameSource(Protocol):
    def capture(self) -> Frame | None:
        """Snapshot the current visual input, or None if the source is not ready."""
        ...


class FileFrameSource:
    """A still image on disk that is returned on every capture."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        if not self.path.is_file():
            raise FileNotFoundError(f"Frame image not found: {self.path}")

    def capture(self) -> Frame | None:
        return Frame.from_path(self.path)


class DirectoryFrameSource:
    """Cycle through the images of a folder, one per capture."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        if not self.path.is_dir():
            raise FileNotFoundError(f"Frame directory not found: {self.path}")
        self._index = 0

    def _images(self) -> list[Path]:
        return sorted(
            p for p in self.path.iterdir()
            if p.is_file() and p.suffix.lower() in IMAGE_SUFFIXES
        )

    def capture(self) -> Frame | None:
        # Re-listed on every capture so frames dropped into the folder are picked up
        images = self._images()
        if not images:
            logger.debug(f"No images in {self.path} yet")
            return None
        path = images[self._index % len(images)]
        self._index += 1
        return Frame.from_path(path)


class StaticFrameSource:
    """An in-memory sequence of frames, repeated in order."""

    def __init__(self, frames: Sequence[Frame]):
        self.frames = list(frames)
        self._index = 0

    def capture(self) -> Frame | None:
        if not self.frames:
            return None
        frame = self.frames[self._index % len(self.frames)]
        self._index += 1
        return frame


def open_source(path: str | Path) -> FrameSource:
    """Pick a file or directory source for a path."""
    p = Path(path)
    if p.is_dir():
        return DirectoryFrameSource(p)
    return FileFrameSource(p)
