"""
Last successful sync timestamp per flow.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional

import structlog

from exceptions import StateFileError
from utils.file_utils import atomic_write_text
from utils.time_range import to_utc

logger = structlog.get_logger(__name__)


class SyncStateStore:
    """ISO8601 timestamp in a single-line file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def read(self) -> Optional[datetime]:
        """Stored timestamp, or None when missing or unparseable."""
        try:
            raw = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("sync_state_unreadable", path=str(self.path), error=str(e))
            return None

        try:
            return to_utc(datetime.fromisoformat(raw))
        except ValueError:
            logger.warning("sync_state_invalid", path=str(self.path), value=raw[:50])
            return None

    def write(self, ts: datetime) -> None:
        """
        Persist `ts` (converted to UTC).

        Raises:
            StateFileError: If the file cannot be written
        """
        try:
            atomic_write_text(self.path, to_utc(ts).isoformat())
        except OSError as e:
            raise StateFileError(str(self.path), f"cannot write timestamp: {e}") from e
        logger.info("sync_state_saved", path=str(self.path), ts=to_utc(ts).isoformat())
