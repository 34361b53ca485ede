"""
=============================================================================
THREAD POOL
=============================================================================

A fixed set of worker threads fed by one queue. The accept loop submits
one task per connection; a worker owns that connection until it closes.

    ┌──────────────┐   submit()   ┌───────────────────┐
    │ accept loop  │ ───────────► │ queue.Queue       │
    └──────────────┘              └─────────┬─────────┘
                                            │ get()
                  ┌─────────────────────────┼─────────────────────────┐
                  ▼                         ▼                         ▼
            ┌──────────┐              ┌──────────┐              ┌──────────┐
            │ Worker-0 │              │ Worker-1 │     ...      │ Worker-N │
            └──────────┘              └──────────┘              └──────────┘

=============================================================================
SHUTDOWN: POISON PILLS
=============================================================================

shutdown() stops new submissions and enqueues one None per worker. The
queue is FIFO, so every task submitted before shutdown still runs; each
worker exits when it dequeues its pill. Workers are daemon threads, so a
worker stuck past the drain timeout does not keep the process alive.

=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional


logger = logging.getLogger(__name__)


@dataclass
class Task:
    """A deferred call: func(*args)."""
    func: Callable[..., Any]
    args: tuple = ()
    submitted_at: float = field(default_factory=time.monotonic)


class Worker(threading.Thread):
    """Pulls tasks until it receives a poison pill. Task errors are logged, never fatal."""

    def __init__(self, task_queue: "queue.Queue[Optional[Task]]", worker_id: int):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id
        self.busy = False
        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug("Worker %d started", self.worker_id)

        while True:
            task = self.task_queue.get()
            try:
                if task is None:
                    break
                self._execute(task)
            finally:
                self.task_queue.task_done()

        logger.debug("Worker %d stopped", self.worker_id)

    def _execute(self, task: Task):
        self.busy = True
        started = time.monotonic()
        try:
            task.func(*task.args)
            self.tasks_completed += 1
            logger.debug(
                "Worker %d completed task in %.3fs (queued %.3fs)",
                self.worker_id, time.monotonic() - started, started - task.submitted_at,
            )
        except Exception as e:
            self.tasks_failed += 1
            logger.exception("Worker %d task failed: %s", self.worker_id, e)
        finally:
            self.busy = False


class ThreadPool:
    """
    Fixed-size worker pool.

    Usage:
        pool = ThreadPool(workers=4)
        pool.start()
        pool.submit(handle_connection, conn)
        pool.shutdown(timeout=10.0)     # True if every worker exited
    """

    def __init__(self, workers: int = 4):
        if workers < 1:
            raise ValueError("workers must be >= 1")

        self.size = workers
        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue()
        self._workers: list[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._closed = False

    @property
    def is_running(self) -> bool:
        return self._started and not self._closed

    @property
    def queue_size(self) -> int:
        return self._task_queue.qsize()

    @property
    def stats(self) -> dict:
        return {
            "workers": len(self._workers),
            "busy": sum(1 for w in self._workers if w.busy),
            "queued": self._task_queue.qsize(),
            "completed": sum(w.tasks_completed for w in self._workers),
            "failed": sum(w.tasks_failed for w in self._workers),
        }

    def start(self):
        with self._lock:
            if self._started:
                return
            logger.info("Starting thread pool with %d workers", self.size)
            for worker_id in range(self.size):
                worker = Worker(self._task_queue, worker_id)
                self._workers.append(worker)
                worker.start()
            self._started = True

    def submit(self, func: Callable[..., Any], *args: Any) -> None:
        """
        Queue func(*args) for a worker.

        Raises:
            RuntimeError: If the pool is not started or is shutting down.
        """
        with self._lock:
            if not self._started:
                raise RuntimeError("Thread pool not started")
            if self._closed:
                raise RuntimeError("Thread pool is shutting down")
            self._task_queue.put(Task(func=func, args=args))

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Let queued tasks finish, then stop every worker.

        Args:
            timeout: Overall seconds to wait. None waits indefinitely.

        Returns:
            True if all workers exited in time.
        """
        with self._lock:
            if not self._started or self._closed:
                return True
            self._closed = True
            logger.info("Shutting down thread pool...")
            for _ in self._workers:
                self._task_queue.put(None)

        deadline = None if timeout is None else time.monotonic() + timeout
        for worker in self._workers:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            worker.join(remaining)

        stragglers = [w.name for w in self._workers if w.is_alive()]
        if stragglers:
            logger.warning("Thread pool shutdown timed out, still running: %s", ", ".join(stragglers))
            return False

        logger.info("Thread pool shutdown complete")
        return True
