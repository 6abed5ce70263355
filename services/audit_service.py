"""
Audit CSV writer.

One file per run: <flow>_<dryrun|real>_<YYYYmmdd_HHMMSS>_<request_id>.csv
A numeric suffix is added when that name is already taken.
"""

import csv
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import structlog

from exceptions import StateFileError
from models.sync import AuditRow

logger = structlog.get_logger(__name__)

MAX_NAME_ATTEMPTS = 100

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


def audit_filename(
    flow: str,
    dry_run: bool,
    request_id: str,
    now: Optional[datetime] = None,
    attempt: int = 0,
) -> str:
    now = now or datetime.now(timezone.utc)
    mode = "dryrun" if dry_run else "real"
    # Request ids may come from webhook bodies
    safe_id = _UNSAFE_CHARS.sub("", request_id)[:64] or "run"
    suffix = f"_{attempt}" if attempt else ""
    return f"{flow}_{mode}_{now.strftime('%Y%m%d_%H%M%S')}_{safe_id}{suffix}.csv"


class AuditWriter:
    """Writes AuditRows to a CSV file in a fixed column order."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def write(
        self,
        flow: str,
        rows: list[AuditRow],
        columns: list[str],
        dry_run: bool,
        request_id: str,
    ) -> Path:
        """
        Write all rows to a new file and return its path.

        Never overwrites an existing audit file.

        Raises:
            StateFileError: If the directory or file cannot be written
        """
        now = datetime.now(timezone.utc)
        path = self.directory / audit_filename(flow, dry_run, request_id, now)

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fh = None
            for attempt in range(MAX_NAME_ATTEMPTS):
                path = self.directory / audit_filename(flow, dry_run, request_id, now, attempt)
                try:
                    fh = open(path, "x", newline="", encoding="utf-8")
                    break
                except FileExistsError:
                    logger.debug("audit_csv_name_taken", path=str(path))
            if fh is None:
                raise StateFileError(str(path), "no free audit CSV name")

            with fh:
                writer = csv.DictWriter(fh, fieldnames=columns)
                writer.writeheader()
                for row in rows:
                    writer.writerow(row.to_csv_row(columns))
        except OSError as e:
            raise StateFileError(str(path), f"cannot write audit CSV: {e}") from e

        logger.info("audit_csv_written", path=str(path), rows=len(rows), request_id=request_id)
        return path
