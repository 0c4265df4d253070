"""
Fire-and-forget background task supervisor.

Handlers hand off slow work (sending mail, mostly) without waiting for it.
Each task runs on its own thread; a task that raises is logged and counted
as finished so it can neither crash the process nor hold up shutdown.
The number of concurrent tasks is not bounded.
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from backend.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

Task = Callable[[], object]


@dataclass(frozen=True)
class TaskOutcome:
    """Result of a single supervised run: success or an isolated failure."""

    name: str
    ok: bool
    duration_ms: float
    error: BaseException | None = None


class TaskSupervisor:
    """
    Runs submitted tasks off the caller's path and tracks them for shutdown.

    submit() never blocks on the task; wait() blocks until every task
    submitted so far has finished. Stopping new submissions before calling
    wait() is left to the caller.
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._in_flight = 0
        self._completed = 0
        self._failed = 0
        self._sequence = 0

    @property
    def in_flight(self) -> int:
        with self._cond:
            return self._in_flight

    def stats(self) -> dict[str, int]:
        with self._cond:
            return {
                "in_flight": self._in_flight,
                "completed": self._completed,
                "failed": self._failed,
            }

    def submit(self, task: Task, *, name: str | None = None) -> None:
        """Register task as outstanding and start it on a new thread."""
        with self._cond:
            self._in_flight += 1
            self._sequence += 1
            task_name = name or f"{getattr(task, '__name__', 'task')}-{self._sequence}"

        thread = threading.Thread(
            target=self._run,
            args=(task, task_name),
            name=f"bg-{task_name}",
            daemon=True,
        )
        try:
            thread.start()
        except RuntimeError:
            self._finish(TaskOutcome(name=task_name, ok=False, duration_ms=0.0))
            raise

    def wait(self, timeout: float | None = None) -> bool:
        """
        Block until no submitted task is outstanding.

        Returns False if timeout elapsed first.
        """
        with self._cond:
            return self._cond.wait_for(lambda: self._in_flight == 0, timeout=timeout)

    def _run(self, task: Task, name: str) -> None:
        # replaced below unless a BaseException escapes the task
        outcome = TaskOutcome(name=name, ok=False, duration_ms=0.0)
        start = time.perf_counter()
        try:
            task()
            outcome = TaskOutcome(name=name, ok=True, duration_ms=_elapsed_ms(start))
            logger.debug("Background task completed", task=name, duration_ms=outcome.duration_ms)
        except Exception as e:
            outcome = TaskOutcome(name=name, ok=False, duration_ms=_elapsed_ms(start), error=e)
            logger.error(
                "Background task failed",
                task=name,
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=outcome.duration_ms,
                exc_info=e,
            )
        finally:
            self._finish(outcome)

    def _finish(self, outcome: TaskOutcome) -> None:
        with self._cond:
            self._in_flight -= 1
            if outcome.ok:
                self._completed += 1
            else:
                self._failed += 1
            self._cond.notify_all()


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)
