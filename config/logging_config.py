"""Diagnostic logging: console handler plus a dated log file.

Every core module logs through ``logging.getLogger(__name__)``. Call
setup_logging() once at startup; it attaches a console handler and a file
handler writing ``<timestamp> [<Level>]: <message>`` lines to
``<logs_dir>/<prefix>_YYYY-MM-DD.log`` and purges files older than the
retention window.
"""

import logging
import sys
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import List, Optional

from .settings import Settings, get_settings

LOG_FORMAT = "%(asctime)s [%(levelname)s]: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_LEVEL_NAMES = {
    logging.DEBUG: "Debug",
    logging.INFO: "Info",
    logging.WARNING: "Warning",
    logging.ERROR: "Error",
    logging.CRITICAL: "Error",
}


class DiagnosticFormatter(logging.Formatter):
    """Formatter rendering level names as Debug/Info/Warning/Error."""

    def __init__(self):
        super().__init__(LOG_FORMAT, datefmt=DATE_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        original = record.levelname
        record.levelname = _LEVEL_NAMES.get(record.levelno, original.capitalize())
        try:
            return super().format(record)
        finally:
            record.levelname = original


class DatedFileHandler(logging.FileHandler):
    """File handler appending to the log file for the day it was opened."""

    def __init__(self, logs_dir: Path, prefix: str, day: Optional[date] = None):
        self.logs_dir = Path(logs_dir)
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        day = day or date.today()
        super().__init__(
            self.logs_dir / f"{prefix}_{day.isoformat()}.log",
            mode="a",
            encoding="utf-8",
        )


def _file_date(path: Path, prefix: str) -> date:
    stamp = path.stem[len(prefix) + 1:]
    try:
        return datetime.strptime(stamp, "%Y-%m-%d").date()
    except ValueError:
        return datetime.fromtimestamp(path.stat().st_mtime).date()


def purge_old_logs(
    logs_dir: Path,
    prefix: str = "dbadmin",
    retention_days: int = 30,
    today: Optional[date] = None,
) -> List[Path]:
    """
    Delete log files older than the retention window.

    Args:
        logs_dir: Directory holding the dated log files
        prefix: Log file name prefix
        retention_days: Files dated before today minus this many days are removed
        today: Reference date (defaults to the current date)

    Returns:
        Paths of the removed files
    """
    logs_dir = Path(logs_dir)
    if not logs_dir.exists():
        return []

    cutoff = (today or date.today()) - timedelta(days=retention_days)
    removed = []
    for log_file in logs_dir.glob(f"{prefix}_*.log"):
        if _file_date(log_file, prefix) < cutoff:
            try:
                log_file.unlink()
                removed.append(log_file)
            except OSError as e:
                logging.getLogger(__name__).warning(f"Could not remove old log file {log_file}: {e}")
    return removed


def setup_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """Configure the root logger with console and dated file handlers.

    Safe to call multiple times; handlers are only attached once.
    """
    settings = settings or get_settings()
    root = logging.getLogger()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    root.setLevel(level)

    if any(isinstance(h, DatedFileHandler) for h in root.handlers):
        return root

    removed = purge_old_logs(
        Path(settings.logs_dir),
        prefix=settings.log_file_prefix,
        retention_days=settings.log_retention_days,
    )

    formatter = DiagnosticFormatter()

    # stderr keeps stdout free for the presentation layer
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)

    file_handler = DatedFileHandler(Path(settings.logs_dir), settings.log_file_prefix)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    if removed:
        root.info(f"Purged {len(removed)} log files older than {settings.log_retention_days} days")
    root.debug(f"Logging initialized: {file_handler.baseFilename}")
    return root
