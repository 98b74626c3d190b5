"""System-wide review lock.

Only one review surface may be visible at a time because it occupies the
shared terminal display. The lock is a marker directory created with an
atomic ``mkdir``.

Design notes:
- A marker that is not a directory is left over from a crashed holder and
  is removed before acquiring.
- A marker older than ``stale_after`` seconds is reclaimed by any waiter.
  It is renamed aside and only deleted if it is still the marker that was
  found stale. This trades strict mutual exclusion for deadlock freedom
  when a holder dies without releasing.
- Threads of one process are serialized by an in-process lock before they
  touch the marker; ``review_lock()`` hands out one instance per path.
"""

from __future__ import annotations

import itertools
import logging
import os
import shutil
import threading
from pathlib import Path
from types import TracebackType

from pydantic import BaseModel, ValidationError

from .clock import SYSTEM_CLOCK, Clock
from .config import DEFAULT_LOCK_STALE_AFTER
from .errors import LockError, sanitize_exception

_logger = logging.getLogger(__name__)

OWNER_FILE = "owner.json"

_RECLAIM_SEQUENCE = itertools.count(1)


class LockHolder(BaseModel):
    """Identity recorded inside the marker by the process holding the lock."""

    model_config = {"frozen": True}

    pid: int
    acquired_at: float


class ReviewLock:
    """Exclusive marker guarding the review surface."""

    def __init__(
        self,
        path: Path,
        *,
        stale_after: float = DEFAULT_LOCK_STALE_AFTER,
        retry_interval: float = 0.2,
        clock: Clock = SYSTEM_CLOCK,
    ) -> None:
        self.path = path
        self.stale_after = stale_after
        self.retry_interval = retry_interval
        self.clock = clock
        self._thread_lock = threading.Lock()
        self._held = False

    @property
    def held(self) -> bool:
        """True while this instance holds the marker."""
        return self._held

    def acquire(self) -> LockHolder:
        """Block until the marker is ours. Waits indefinitely; stale markers are reclaimed."""
        self._thread_lock.acquire()
        try:
            return self._acquire_marker()
        except BaseException:
            self._thread_lock.release()
            raise

    def release(self) -> None:
        """Remove the marker. No-op when this instance does not hold it."""
        if not self._held:
            return
        try:
            shutil.rmtree(self.path, ignore_errors=True)
        finally:
            self._held = False
            self._thread_lock.release()
        _logger.debug("released review lock %s", self.path)

    def holder(self) -> LockHolder | None:
        """Current holder as recorded in the marker, if readable."""
        try:
            raw = (self.path / OWNER_FILE).read_text(encoding="utf-8")
        except OSError:
            return None
        try:
            return LockHolder.model_validate_json(raw)
        except ValidationError:
            return None

    def age(self) -> float | None:
        """Seconds since the marker was last modified, or None if absent."""
        try:
            mtime = self.path.stat().st_mtime
        except FileNotFoundError:
            return None
        return self.clock.now() - mtime

    def force_release(self) -> bool:
        """Remove the marker regardless of who holds it. Returns True if one existed."""
        existed = self.path.exists() or self.path.is_symlink()
        if self.path.is_dir() and not self.path.is_symlink():
            shutil.rmtree(self.path, ignore_errors=True)
        elif existed:
            self.path.unlink(missing_ok=True)
        return existed

    def __enter__(self) -> LockHolder:
        return self.acquire()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()

    def _acquire_marker(self) -> LockHolder:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise LockError(f"cannot create lock directory: {sanitize_exception(exc)}") from exc
        while True:
            self._clear_malformed()
            try:
                self.path.mkdir()
            except FileExistsError:
                self._reclaim_if_stale()
                self.clock.sleep(self.retry_interval)
                continue
            except OSError as exc:
                raise LockError(f"cannot create lock marker: {sanitize_exception(exc)}") from exc
            break

        holder = LockHolder(pid=os.getpid(), acquired_at=self.clock.now())
        try:
            (self.path / OWNER_FILE).write_text(holder.model_dump_json(), encoding="utf-8")
        except OSError as exc:
            _logger.debug("could not record lock owner: %s", sanitize_exception(exc))
        self._held = True
        _logger.debug("acquired review lock %s", self.path)
        return holder

    def _clear_malformed(self) -> None:
        if self.path.is_symlink() or (self.path.exists() and not self.path.is_dir()):
            _logger.warning("removing malformed review lock marker %s", self.path)
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
            except OSError as exc:
                raise LockError(f"cannot remove malformed lock: {sanitize_exception(exc)}") from exc

    def _reclaim_if_stale(self) -> None:
        try:
            seen = self.path.stat()
        except FileNotFoundError:
            return
        age = self.clock.now() - seen.st_mtime
        if age <= self.stale_after:
            return
        holder = self.holder()
        # Another waiter may have replaced the marker since it was inspected.
        suffix = f"stale-{os.getpid()}-{next(_RECLAIM_SEQUENCE)}"
        aside = self.path.with_name(f"{self.path.name}.{suffix}")
        try:
            os.rename(self.path, aside)
        except FileNotFoundError:
            return
        except OSError as exc:
            raise LockError(f"cannot reclaim stale lock: {sanitize_exception(exc)}") from exc
        if aside.stat().st_ino != seen.st_ino:
            _logger.debug("lock marker %s was replaced while reclaiming, restoring it", self.path)
            try:
                os.rename(aside, self.path)
            except OSError as exc:
                _logger.warning("cannot restore review lock marker: %s", sanitize_exception(exc))
                shutil.rmtree(aside, ignore_errors=True)
            return
        _logger.warning(
            "reclaiming stale review lock (age %.0fs, pid %s)",
            age,
            holder.pid if holder is not None else "unknown",
        )
        shutil.rmtree(aside, ignore_errors=True)


_LOCKS: dict[Path, ReviewLock] = {}
_LOCKS_GUARD = threading.Lock()


def review_lock(
    path: Path,
    *,
    stale_after: float = DEFAULT_LOCK_STALE_AFTER,
    retry_interval: float = 0.2,
    clock: Clock = SYSTEM_CLOCK,
) -> ReviewLock:
    """Return the process-wide lock for ``path``. The first configuration for a path wins."""
    key = path.absolute()
    with _LOCKS_GUARD:
        lock = _LOCKS.get(key)
        if lock is None:
            lock = ReviewLock(key, stale_after=stale_after, retry_interval=retry_interval, clock=clock)
            _LOCKS[key] = lock
        return lock
