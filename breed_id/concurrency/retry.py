"""
Bounded-retry execution of background tasks.

A task is attempted until it succeeds or ``max_tries`` attempts have failed,
waiting ``wait_between`` seconds between attempts. Attempts run on a bounded
thread pool; a job that is waiting to retry gives its worker back and is
resubmitted by a single scheduler thread when its wait is over. Jobs are
independent of each other; attempts within one job are strictly sequential.
"""

import heapq
import itertools
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Callable, Generic, List, Optional, Tuple, TypeVar

from ..common.exceptions import JobCancelled, RetryExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNLIMITED_TRIES = -1

# Upper bound on how long a cancelled job can sit in the wait queue
CANCEL_CHECK_INTERVAL = 0.05


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of one task attempt: a value or an error."""

    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: Exception) -> "Result[T]":
        return cls(error=error)


class JobState(Enum):
    """Lifecycle of a retry job."""

    PENDING = "pending"
    RUNNING = "running"
    WAITING = "waiting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


@dataclass
class RetryJob(Generic[T]):
    """A unit of retryable work and its progress."""

    task: Callable[[], Result[T]]
    max_tries: int = 3
    wait_between: float = 1.0
    name: str = ""
    attempt: int = 0
    state: JobState = JobState.PENDING
    last_error: Optional[Exception] = None
    # time.monotonic() at the start of each attempt
    attempt_started: List[float] = field(default_factory=list)
    future: Optional[Future] = None

    @property
    def done(self) -> bool:
        return self.state in (JobState.SUCCEEDED, JobState.EXHAUSTED, JobState.CANCELLED)

    def can_retry(self) -> bool:
        return self.max_tries == UNLIMITED_TRIES or self.attempt < self.max_tries


@dataclass
class _ScheduledJob(Generic[T]):
    job: RetryJob[T]
    on_success: Callable[[T], None]
    on_error: Optional[Callable[[Exception, int], None]]
    on_exhausted: Optional[Callable[[RetryExhausted], None]]
    cancel_event: threading.Event


class RetryExecutor:
    """Runs retry jobs on a bounded thread pool without blocking the caller."""

    def __init__(self, max_workers: int = 8):
        """
        Initialize the executor.

        Args:
            max_workers: Maximum number of attempts running at once. Further
                attempts queue until a worker frees up; jobs waiting between
                attempts do not occupy a worker.
        """
        self.max_workers = max_workers
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="retry-job"
        )
        # Heap of (resume_at, sequence, scheduled job)
        self._waiting: List[Tuple[float, int, _ScheduledJob]] = []
        self._sequence = itertools.count()
        self._condition = threading.Condition()
        self._shutdown = False
        self._scheduler = threading.Thread(
            target=self._resume_waiting_jobs, name="retry-scheduler", daemon=True
        )
        self._scheduler.start()

    def start(
        self,
        task: Callable[[], Result[T]],
        on_success: Callable[[T], None],
        on_error: Optional[Callable[[Exception, int], None]] = None,
        on_exhausted: Optional[Callable[[RetryExhausted], None]] = None,
        max_tries: int = 3,
        wait_between: float = 1.0,
        cancel_event: Optional[threading.Event] = None,
        name: str = "",
    ) -> RetryJob[T]:
        """
        Schedule a task and return immediately.

        Args:
            task: Called once per attempt. Returns a Result; raised exceptions
                count as failed attempts.
            on_success: Called exactly once with the value of the first
                successful attempt.
            on_error: Called with (error, attempt) after every failed attempt.
            on_exhausted: Called once if every allowed attempt failed.
            max_tries: Attempt limit, or -1 to retry until success.
            wait_between: Seconds to wait after a failed attempt before the next.
            cancel_event: When set, the job stops before its next attempt and
                any pending wait is cut short.
            name: Label used in log messages.

        Returns:
            The job. ``job.future`` resolves to the success value, or raises
            RetryExhausted / JobCancelled.

        Raises:
            RuntimeError: If the executor has been shut down
        """
        if max_tries != UNLIMITED_TRIES and max_tries < 1:
            raise ValueError(f"max_tries must be -1 or at least 1, got {max_tries}")
        if wait_between < 0:
            raise ValueError(f"wait_between must not be negative, got {wait_between}")
        if self._shutdown:
            raise RuntimeError("RetryExecutor is shut down")

        job = RetryJob(
            task=task, max_tries=max_tries, wait_between=wait_between, name=name
        )
        job.future = Future()
        self._submit(
            _ScheduledJob(
                job=job,
                on_success=on_success,
                on_error=on_error,
                on_exhausted=on_exhausted,
                cancel_event=cancel_event or threading.Event(),
            )
        )
        return job

    def shutdown(self, wait: bool = True) -> None:
        """
        Stop accepting jobs.

        Jobs that are queued or waiting to retry are cancelled; attempts
        already running finish (and are awaited when ``wait`` is True).
        """
        with self._condition:
            self._shutdown = True
            dropped = [entry[2] for entry in self._waiting]
            self._waiting.clear()
            self._condition.notify_all()

        for scheduled in dropped:
            self._cancel(scheduled, "dropped, executor shut down")
        self._pool.shutdown(wait=wait, cancel_futures=True)
        if wait:
            self._scheduler.join()

    def __enter__(self) -> "RetryExecutor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def _submit(self, scheduled: _ScheduledJob) -> None:
        try:
            attempt = self._pool.submit(self._run_attempt, scheduled)
        except RuntimeError:
            # Pool shut down between scheduling and submission
            self._cancel(scheduled, "dropped, executor shut down")
            return
        attempt.add_done_callback(partial(self._attempt_done, scheduled))

    def _attempt_done(self, scheduled: _ScheduledJob, attempt: Future) -> None:
        if attempt.cancelled():
            self._cancel(scheduled, "dropped, executor shut down")
            return
        error = attempt.exception()
        if error is not None and not scheduled.job.future.done():
            # A callback raised; surface it through the job's future
            scheduled.job.future.set_exception(error)

    def _run_attempt(self, scheduled: _ScheduledJob) -> None:
        job = scheduled.job
        if scheduled.cancel_event.is_set():
            self._cancel(scheduled, f"cancelled before attempt {job.attempt + 1}")
            return

        job.attempt += 1
        job.state = JobState.RUNNING
        job.attempt_started.append(time.monotonic())
        result = self._attempt(job)

        if result.ok:
            job.state = JobState.SUCCEEDED
            logger.debug(f"Job '{job.name}' succeeded on attempt {job.attempt}")
            scheduled.on_success(result.value)
            job.future.set_result(result.value)
            return

        job.last_error = result.error
        if scheduled.on_error is not None:
            scheduled.on_error(result.error, job.attempt)

        if not job.can_retry():
            job.state = JobState.EXHAUSTED
            exhausted = RetryExhausted(job.attempt, job.last_error)
            logger.debug(f"Job '{job.name}' exhausted: {exhausted}")
            if scheduled.on_exhausted is not None:
                scheduled.on_exhausted(exhausted)
            job.future.set_exception(exhausted)
            return

        job.state = JobState.WAITING
        with self._condition:
            if not self._shutdown:
                resume_at = time.monotonic() + job.wait_between
                heapq.heappush(
                    self._waiting, (resume_at, next(self._sequence), scheduled)
                )
                self._condition.notify()
                return
        self._cancel(scheduled, "dropped, executor shut down")

    def _resume_waiting_jobs(self) -> None:
        """Scheduler loop: resubmit jobs whose wait is over, drop cancelled ones."""
        while True:
            with self._condition:
                while not self._shutdown and not self._waiting:
                    self._condition.wait()
                if self._shutdown:
                    return

                now = time.monotonic()
                due = []
                while self._waiting and self._waiting[0][0] <= now:
                    due.append(heapq.heappop(self._waiting)[2])

                cancelled = [e[2] for e in self._waiting if e[2].cancel_event.is_set()]
                if cancelled:
                    self._waiting = [
                        e for e in self._waiting if not e[2].cancel_event.is_set()
                    ]
                    heapq.heapify(self._waiting)

                if not due and not cancelled:
                    # Event.wait cannot be multiplexed, so cancellation is
                    # checked at least every CANCEL_CHECK_INTERVAL
                    self._condition.wait(
                        min(self._waiting[0][0] - now, CANCEL_CHECK_INTERVAL)
                    )
                    continue

            for scheduled in cancelled:
                self._cancel(scheduled, "cancelled while waiting to retry")
            for scheduled in due:
                self._submit(scheduled)

    @staticmethod
    def _cancel(scheduled: _ScheduledJob, reason: str) -> None:
        job = scheduled.job
        job.state = JobState.CANCELLED
        if not job.future.done():
            job.future.set_exception(JobCancelled(f"Job '{job.name}' {reason}"))

    @staticmethod
    def _attempt(job: RetryJob[T]) -> Result[T]:
        try:
            result = job.task()
        except Exception as e:
            return Result.failure(e)

        if not isinstance(result, Result):
            return Result.success(result)
        return result
