"""
Advisory file locks for the shared case directory.

A lock is a marker file created with O_CREAT|O_EXCL next to the resource it
guards (``state.json`` -> ``state.json.lock``). Cooperating processes agree to
take it before mutating the resource; nothing stops a process that ignores it.
A marker older than ``stale_after`` is presumed to belong to a crashed holder
and is reclaimed.
"""

import json
import logging
import os
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from caseguard.domain.exceptions import LockTimeout
from caseguard.domain.models import format_timestamp, parse_timestamp, utc_now

logger = logging.getLogger("caseguard.lock")

MAX_BACKOFF = 0.5


def lock_path_for(resource: Path) -> Path:
    return resource.with_name(resource.name + ".lock")


class FileLock:
    """
    Exclusive advisory lock on one case file.

    Not reentrant: a holder that calls ``acquire()`` again waits on itself
    until timeout.
    """

    def __init__(
        self,
        path: Path,
        timeout: float = 5.0,
        retry_interval: float = 0.05,
        stale_after: float = 30.0,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            path: The lock marker itself (use ``lock_path_for`` for a resource)
            timeout: Seconds to keep retrying before giving up
            retry_interval: First backoff delay in seconds
            stale_after: Age in seconds after which a marker is reclaimed
            clock: Source of the current time
            sleep: Backoff sleep, injectable for tests
        """
        self.path = Path(path)
        self.timeout = timeout
        self.retry_interval = retry_interval
        self.stale_after = stale_after
        self._clock = clock
        self._sleep = sleep

    def _acquired_at(self, path: Path | None = None) -> datetime | None:
        """Timestamp recorded by the holder, falling back to the marker mtime."""
        path = path or self.path
        try:
            payload = json.loads(path.read_text())
            return parse_timestamp(payload["acquired_at"])
        except FileNotFoundError:
            return None
        except (ValueError, KeyError, TypeError):
            logger.debug("Unreadable lock payload in %s, using mtime", path)
        try:
            mtime = path.stat().st_mtime
        except FileNotFoundError:
            return None
        return datetime.fromtimestamp(mtime, tz=self._clock().tzinfo)

    def is_stale(self, path: Path | None = None) -> bool:
        acquired_at = self._acquired_at(path)
        if acquired_at is None:
            return False
        age = (self._clock() - acquired_at).total_seconds()
        return age > self.stale_after

    def _try_create(self) -> bool:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        payload = {"pid": os.getpid(), "acquired_at": format_timestamp(self._clock())}
        with os.fdopen(fd, "w") as f:
            json.dump(payload, f)
        return True

    def _reclaim(self) -> bool:
        """
        Move a stale marker aside and delete it.

        The rename is atomic, so of several waiters that saw the same stale
        marker only one takes it. A waiter that finds it moved a live marker
        instead (another reclaimer got there first) puts it back.

        Returns:
            True if the marker is gone and creation can be retried
        """
        suffix = f"stale.{os.getpid()}.{time.monotonic_ns()}"
        aside = self.path.with_name(f"{self.path.name}.{suffix}")
        try:
            os.rename(self.path, aside)
        except FileNotFoundError:
            return True

        if self.is_stale(aside):
            logger.warning("Reclaiming stale lock %s", self.path)
            aside.unlink(missing_ok=True)
            return True

        try:
            os.link(aside, self.path)
        except FileExistsError:
            logger.error("Lost live lock marker %s while reclaiming", self.path)
        aside.unlink(missing_ok=True)
        return False

    def acquire(self) -> bool:
        """
        Try to take the lock until ``timeout`` elapses.

        Returns:
            True once the marker is ours, False on timeout
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        deadline = time.monotonic() + self.timeout
        delay = self.retry_interval

        while True:
            if self._try_create():
                logger.debug("Acquired %s", self.path)
                return True

            if self.is_stale() and self._reclaim():
                continue

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.debug("Timed out waiting for %s", self.path)
                return False
            logger.debug("Waiting on %s (%.3fs)", self.path, delay)
            self._sleep(min(delay, remaining))
            delay = min(delay * 2, MAX_BACKOFF)

    def release(self) -> None:
        """Remove the marker; a missing marker is not an error."""
        self.path.unlink(missing_ok=True)
        logger.debug("Released %s", self.path)

    @contextmanager
    def held(self) -> Iterator[None]:
        """
        Hold the lock for the duration of the block.

        Raises:
            LockTimeout: If the lock cannot be acquired within ``timeout``
        """
        if not self.acquire():
            raise LockTimeout(str(self.path), self.timeout)
        try:
            yield
        finally:
            self.release()
