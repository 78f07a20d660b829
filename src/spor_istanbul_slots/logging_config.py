import logging
import os
from pathlib import Path
from typing import Optional


LOG_FORMAT = "%(asctime)s %(levelname)s [%(run_id)s] %(name)s - %(message)s"

# Shown before a run directory exists (argument parsing, parse-snapshot).
NO_RUN_ID = "-"

NOISY_LOGGERS = ("playwright", "selenium", "urllib3")


class RunIdFilter(logging.Filter):
    """
    Stamps every record with the run id, so lines from one availability check can be
    picked out of a shared console or CI log and matched to its `logs/<run_id>/` folder.
    """

    def __init__(self, run_id: str) -> None:
        super().__init__()
        self.run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = self.run_id
        return True


def configure_logging(
    level: str = "INFO",
    file_path: Optional[str] = None,
    *,
    run_id: Optional[str] = None,
) -> None:
    numeric_level = getattr(logging, (level or "INFO").upper(), logging.INFO)
    run_filter = RunIdFilter(run_id or NO_RUN_ID)

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    for handler in handlers:
        handler.addFilter(run_filter)

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,  # the check command reconfigures once the run directory exists
    )

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(os.getenv("NOISY_LOG_LEVEL", "WARNING"))
