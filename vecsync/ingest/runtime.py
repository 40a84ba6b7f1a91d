# vecsync/ingest/runtime.py
"""
Run control for indexing: cancellation, retries and the per-root run lock.
"""

from __future__ import annotations

import os
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
)

from vecsync.exceptions import RunInProgressError, TransientError
from vecsync.ingest.state.manager import root_key
from vecsync.logging import get_logger
from vecsync.logging.tags import INDEX

logger = get_logger(__name__)

T = TypeVar("T")


class CancellationToken:
    """
    Cooperative cancellation flag shared between a caller and a run.

    The orchestrator checks it before submitting new work; in-flight calls
    are allowed to finish.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def event(self) -> threading.Event:
        return self._event

    def wait(self, timeout: float) -> bool:
        """Sleep up to timeout seconds, returning early if cancelled."""
        return self._event.wait(timeout)


class RetryPolicy:
    """
    Bounded exponential backoff for external calls.

    Only TransientError is retried. Anything else propagates immediately,
    and the last TransientError propagates once attempts are exhausted.

    Usage:
        policy = RetryPolicy(max_attempts=4, initial=0.5, maximum=8.0)
        vectors = policy.call(embedder.embed_batch, texts, description="embed batch")
    """

    def __init__(
        self,
        max_attempts: int = 4,
        initial: float = 0.5,
        maximum: float = 8.0,
        sleep: Optional[Callable[[float], Any]] = None,
    ) -> None:
        self.max_attempts = max(1, max_attempts)
        self.initial = initial
        self.maximum = maximum
        self._sleep = sleep or time.sleep

    @classmethod
    def from_config(cls, config: Any) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            initial=config.backoff_initial,
            maximum=config.backoff_max,
        )

    def call(
        self,
        fn: Callable[..., T],
        *args: Any,
        description: str = "call",
        cancel_token: Optional[CancellationToken] = None,
        **kwargs: Any,
    ) -> T:
        stop = stop_after_attempt(self.max_attempts)
        sleep = self._sleep
        if cancel_token is not None:
            stop = stop | stop_when_event_set(cancel_token.event)
            sleep = cancel_token.wait

        def _log_retry(state: RetryCallState) -> None:
            error = state.outcome.exception() if state.outcome else None
            wait = state.next_action.sleep if state.next_action else 0.0
            logger.warning(
                f"{INDEX} {description} failed (attempt {state.attempt_number}/{self.max_attempts}), "
                f"retrying in {wait:.2f}s: {error}"
            )

        retrying = Retrying(
            stop=stop,
            wait=wait_exponential(multiplier=self.initial, max=self.maximum),
            retry=retry_if_exception_type(TransientError),
            sleep=sleep,
            before_sleep=_log_retry,
            reraise=True,
        )
        return retrying(fn, *args, **kwargs)


# =============================================================================
# Run lock
# =============================================================================


class RunRegistry:
    """
    Rejects overlapping runs for the same root.

    Runs in this process are tracked in a process-wide set shared by every
    registry instance; runs in other processes are detected through an
    O_EXCL lock file holding the owner's PID. A lock file whose PID is no
    longer alive, or is this process without a matching in-memory entry, is
    reclaimed.
    """

    _active: set[str] = set()
    _guard = threading.Lock()

    def __init__(self, state_dir: str | Path) -> None:
        self._dir = Path(state_dir).expanduser() / "locks"

    def lock_path(self, root_dir: str | Path) -> Path:
        return self._dir / f"{root_key(root_dir)}.lock"

    def is_locked(self, root_dir: str | Path) -> bool:
        path = self.lock_path(root_dir)
        with self._guard:
            if str(path) in self._active:
                return True
        holder = self._read_holder(path)
        return holder is not None and holder != os.getpid() and _pid_alive(holder)

    @contextmanager
    def hold(self, root_dir: str | Path) -> Iterator[None]:
        path = self.lock_path(root_dir)
        key = str(path)
        with self._guard:
            if key in self._active:
                raise RunInProgressError(str(root_dir), holder="this process")
            self._active.add(key)

        try:
            self._acquire_file(path, str(root_dir))
        except BaseException:
            with self._guard:
                self._active.discard(key)
            raise

        logger.debug(f"{INDEX} Acquired run lock {path}")
        try:
            yield
        finally:
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            with self._guard:
                self._active.discard(key)
            logger.debug(f"{INDEX} Released run lock {path}")

    def _acquire_file(self, path: Path, root_dir: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        for _ in range(2):
            try:
                fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                holder = self._read_holder(path)
                if holder is not None and holder != os.getpid() and _pid_alive(holder):
                    raise RunInProgressError(root_dir, holder=f"pid {holder}")
                logger.warning(f"{INDEX} Reclaiming stale run lock {path} (pid {holder})")
                try:
                    path.unlink()
                except FileNotFoundError:
                    pass
                continue
            with os.fdopen(fd, "w") as f:
                f.write(str(os.getpid()))
            return
        raise RunInProgressError(root_dir, holder="unknown")

    @staticmethod
    def _read_holder(path: Path) -> Optional[int]:
        try:
            return int(path.read_text().strip())
        except (OSError, ValueError):
            return None


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


__all__ = ["CancellationToken", "RetryPolicy", "RunRegistry"]
