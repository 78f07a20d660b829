from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol, Union


logger = logging.getLogger(__name__)


class ScreenshotSink(Protocol):
    def save(self, ordinal: int, slug: str, png: bytes) -> None: ...


def _safe_slug(slug: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_-]+", "_", slug).strip("_")[:60] or "step"


class DirectoryScreenshotSink:
    """
    Writes `{ordinal}-{slug}.png` files into a directory.
    """

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)

    def path_for(self, ordinal: int, slug: str) -> Path:
        return self.directory / f"{ordinal}-{_safe_slug(slug)}.png"

    def save(self, ordinal: int, slug: str, png: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self.path_for(ordinal, slug).write_bytes(png)


@dataclass(frozen=True)
class RunContext:
    """
    Per-run output locations: `<log_root>/<timestamp>/{log.txt,screenshots/}`.
    """

    run_dir: Path
    screenshots_dir: Path
    log_file: Path

    @classmethod
    def create(cls, log_root: Union[str, Path] = "logs", *, now: Optional[datetime] = None) -> "RunContext":
        stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H-%M-%S")
        run_dir = Path(log_root) / stamp
        screenshots_dir = run_dir / "screenshots"
        screenshots_dir.mkdir(parents=True, exist_ok=True)
        return cls(run_dir=run_dir, screenshots_dir=screenshots_dir, log_file=run_dir / "log.txt")

    def screenshot_sink(self) -> DirectoryScreenshotSink:
        return DirectoryScreenshotSink(self.screenshots_dir)

    def save_text(self, name: str, text: str) -> Optional[Path]:
        """
        Best-effort: write a debug artifact into the run directory.
        """
        try:
            path = self.run_dir / name
            path.write_text(text, encoding="utf-8")
            return path
        except Exception:
            logger.debug("Failed to save run artifact name=%s", name, exc_info=True)
            return None
