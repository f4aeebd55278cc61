"""
Bounded worker pool with timed task submission.

A fixed set of worker threads takes tasks from one shared hand-off point.
Admission is a rendezvous: a task is accepted only when an idle worker is
ready to take it, so ``submit_timed`` bounds how long a caller waits for a
free worker. The timeout guards admission only. A task that has been admitted
always runs to completion and the caller waits for its result without a bound.
"""

import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

TaskFunc = Callable[[], Any]


class PoolError(Exception):
    """Base class for failures reported by the pool itself."""


class PoolTimeoutError(PoolError):
    """No worker accepted the task before the admission timeout elapsed.

    The task was never queued and never executed.
    """


class PoolStoppedError(PoolError):
    """The pool is stopped and no longer accepts tasks."""


class InvalidConcurrencyError(PoolError, ValueError):
    """The requested worker count is not a positive integer."""


class PoolState(str, Enum):
    """Lifecycle of a worker pool."""

    CONSTRUCTED = "constructed"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class TaskResult:
    """Outcome of one task: its return value or the exception it raised."""

    value: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        """Return the value, re-raising the task's exception if it failed."""
        if self.error is not None:
            raise self.error
        return self.value


class Task:
    """Submission handle for a single task.

    Holds the callable, a single-use completion signal and the result slot.
    Created fresh for every submission and read by exactly one submitter.
    """

    def __init__(self, func: TaskFunc):
        self.func = func
        self._done = threading.Event()
        self._result: TaskResult | None = None

    def execute(self) -> None:
        """Run the task on the calling worker and signal completion.

        Anything the task raises, including SystemExit, is stored in the
        result so the worker keeps serving.
        """
        try:
            self._result = TaskResult(value=self.func())
        except BaseException as e:
            logger.debug(f"Task raised {e!r}; returning it to the submitter", exc_info=True)
            self._result = TaskResult(error=e)
        finally:
            self._done.set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def wait(self) -> TaskResult:
        """Block until the task has run and return its result."""
        self._done.wait()
        assert self._result is not None
        return self._result


class WorkerPool:
    """
    Fixed-size pool of worker threads.

    Lifecycle is constructed -> running -> stopped. While running, exactly
    ``concurrency`` workers are alive and every admitted task is taken by
    exactly one of them.

    With ``concurrency == 1`` tasks submitted one after another complete in
    submission order. With more workers, completion order is not guaranteed
    to match submission order.

    Example::

        pool = WorkerPool(4)
        pool.run()
        result = pool.submit_timed(lambda: fetch_page(url), timeout=0.5)
        pool.stop()
    """

    def __init__(self, concurrency: int, name: str = "pool"):
        if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency < 1:
            raise InvalidConcurrencyError(
                f"concurrency must be a positive integer, got {concurrency!r}"
            )

        self._concurrency = concurrency
        self._name = name
        self._lock = threading.Lock()
        self._worker_ready = threading.Condition(self._lock)
        self._task_ready = threading.Condition(self._lock)
        self._handoff: deque[Task] = deque()
        self._idle = 0
        self._state = PoolState.CONSTRUCTED
        self._threads: list[threading.Thread] = []

    def __enter__(self) -> "WorkerPool":
        self.run()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def size(self) -> int:
        """Number of workers, fixed at construction."""
        return self._concurrency

    @property
    def state(self) -> PoolState:
        return self._state

    def alive_workers(self) -> int:
        """Count worker threads that have not exited yet."""
        return sum(1 for thread in self._threads if thread.is_alive())

    def run(self) -> None:
        """Start the workers. Calling it again while running does nothing."""
        with self._lock:
            if self._state is PoolState.RUNNING:
                logger.debug(f"Pool {self._name} already running")
                return
            if self._state is PoolState.STOPPED:
                raise PoolStoppedError(f"pool {self._name} has been stopped")

            self._state = PoolState.RUNNING
            for i in range(self._concurrency):
                thread = threading.Thread(
                    target=self._worker_loop,
                    name=f"{self._name}-worker-{i + 1}",
                    daemon=True,
                )
                self._threads.append(thread)
                thread.start()

        logger.info(f"Pool {self._name} started with {self._concurrency} worker(s)")

    def stop(self) -> None:
        """
        Close admission and wait for every worker to exit.

        Tasks already admitted run to completion first. Submitters still
        waiting for a worker are released with PoolStoppedError, as is every
        later submission.
        """
        with self._lock:
            already_stopped = self._state is PoolState.STOPPED
            self._state = PoolState.STOPPED
            self._task_ready.notify_all()
            self._worker_ready.notify_all()
            threads = list(self._threads)

        current = threading.current_thread()
        for thread in threads:
            if thread is current:
                logger.warning(f"Pool {self._name} stopped from one of its own workers")
                continue
            thread.join()

        if not already_stopped:
            logger.info(f"Pool {self._name} stopped")

    def submit(self, func: TaskFunc) -> TaskResult:
        """
        Run ``func`` on a worker and wait for its result.

        Blocks until a worker is free, then until the task finishes. Do not
        call it on a latency-sensitive path without an upstream timeout.
        """
        task = Task(func)
        self._admit(task, timeout=None)
        return task.wait()

    def submit_timed(self, func: TaskFunc, timeout: float) -> TaskResult:
        """
        Run ``func`` on a worker if one accepts it within ``timeout`` seconds.

        Raises PoolTimeoutError when no worker became free in time; the task
        is then abandoned and never runs. Once admitted, the call waits for
        the result with no further time bound.
        """
        task = Task(func)
        self._admit(task, timeout=timeout)
        return task.wait()

    def _admit(self, task: Task, timeout: float | None) -> None:
        deadline = None if timeout is None else time.monotonic() + timeout

        with self._lock:
            while True:
                if self._state is PoolState.STOPPED:
                    raise PoolStoppedError(f"pool {self._name} is stopped; task rejected")

                # Every queued task already has an idle worker claimed for it.
                if self._idle > len(self._handoff):
                    self._handoff.append(task)
                    self._task_ready.notify()
                    return

                if deadline is None:
                    self._worker_ready.wait()
                    continue

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise PoolTimeoutError(
                        f"no worker in pool {self._name} accepted the task within {timeout}s"
                    )
                self._worker_ready.wait(remaining)

    def _worker_loop(self) -> None:
        while True:
            with self._lock:
                self._idle += 1
                self._worker_ready.notify_all()

                while not self._handoff and self._state is not PoolState.STOPPED:
                    self._task_ready.wait()

                self._idle -= 1
                if not self._handoff:
                    return
                task = self._handoff.popleft()

            task.execute()
