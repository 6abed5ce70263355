"""
Cross-process mutual exclusion for cron runs.

A lock is a file holding the owner's pid and a per-acquire token. Its
mtime is its age: once older than the TTL it is stale and the next run
reclaims it.

Usage:
    with cron_lock(path, ttl_seconds=3600) as acquired:
        if not acquired:
            return 0
        run()
"""

import os
import secrets
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import structlog

logger = structlog.get_logger(__name__)


def _identity(st: os.stat_result) -> tuple[int, int, int]:
    return st.st_dev, st.st_ino, st.st_mtime_ns


class CronLock:
    """File lock with a staleness TTL."""

    def __init__(self, path: Path, ttl_seconds: int = 3600):
        self.path = Path(path)
        self.ttl_seconds = ttl_seconds
        self.acquired = False
        self._content = ""

    def _stat(self) -> Optional[os.stat_result]:
        try:
            return os.stat(self.path)
        except FileNotFoundError:
            return None

    def _create(self) -> bool:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        content = f"{os.getpid()}\n{secrets.token_hex(8)}"
        with os.fdopen(fd, "w") as fh:
            fh.write(content)
        self._content = content
        return True

    def _read_content(self) -> Optional[str]:
        try:
            return self.path.read_text()
        except FileNotFoundError:
            return None

    def acquire(self) -> bool:
        """
        Try to take the lock.

        Returns:
            True if this process now holds it, False if a live lock exists
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)

        if self._create():
            self.acquired = True
            return True

        observed = self._stat()
        if observed is None:
            # Released between our attempt and the stat
            self.acquired = self._create()
            return self.acquired

        age = time.time() - observed.st_mtime
        if age < self.ttl_seconds:
            logger.info("lock_held", path=str(self.path), age_seconds=round(age))
            return False

        if not self._take_stale(observed):
            return False

        logger.warning("stale_lock_reclaimed", path=str(self.path), age_seconds=round(age))
        self.acquired = self._create()
        if not self.acquired:
            logger.info("lock_taken_by_other_run", path=str(self.path))
        return self.acquired

    def _take_stale(self, observed: os.stat_result) -> bool:
        """
        Move the stale lock file aside.

        The file is renamed before it is checked, so only the exact file
        judged stale is ever removed. Anything else found at the path is
        put back and the lock is left to its owner.
        """
        aside = self.path.with_name(f"{self.path.name}.stale-{os.getpid()}-{secrets.token_hex(4)}")
        try:
            os.rename(self.path, aside)
        except FileNotFoundError:
            # Another run already moved it; the O_EXCL create decides
            return True

        if _identity(os.stat(aside)) == _identity(observed):
            os.unlink(aside)
            return True

        logger.info("lock_replaced_before_reclaim", path=str(self.path))
        try:
            os.link(aside, self.path)
        except FileExistsError:
            logger.warning("lock_restore_skipped", path=str(self.path))
        os.unlink(aside)
        return False

    def release(self) -> None:
        """Remove the lock file if this instance still owns it."""
        if not self.acquired:
            return
        self.acquired = False

        content = self._read_content()
        if content is None:
            logger.warning("lock_already_removed", path=str(self.path))
            return
        if content != self._content:
            logger.warning("lock_owned_elsewhere", path=str(self.path))
            return

        try:
            self.path.unlink()
        except FileNotFoundError:
            logger.warning("lock_already_removed", path=str(self.path))


@contextmanager
def cron_lock(path: Path, ttl_seconds: int = 3600) -> Iterator[bool]:
    """Yield whether the lock was taken; always release on exit."""
    lock = CronLock(path, ttl_seconds)
    acquired = lock.acquire()
    try:
        yield acquired
    finally:
        lock.release()
