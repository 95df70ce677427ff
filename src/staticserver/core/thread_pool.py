"""
=============================================================================
THREAD POOL
=============================================================================

Worker threads draining one task queue. The server submits one task per
accepted connection; a worker owns that connection until it closes, which
for a browser means until its keep-alive idle timeout runs out.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   accept loop ──submit()──► [ queue ] ──get()──► Worker-0  (busy)   │
    │                                         ──get()──► Worker-1  (busy)   │
    │                     all busy, task waiting?                           │
    │                         └──► spawn Worker-2 (up to max_workers)      │
    │                                                                      │
    │   extra worker idle for idle_timeout ──► retires (down to min)       │
    │   shutdown(): one None ("poison pill") per worker, then join         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A fixed pool would let a handful of idle keep-alive connections starve
every new client, so the pool grows while all workers are busy and shrinks
back to ``min_workers`` once the extra workers sit idle.

The queue is bounded. Once ``max_workers`` are busy, submit() blocks while
the queue is full, so a burst waits in the queue (and then in the kernel's
accept backlog) instead of spawning unbounded threads.

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional
import logging
import queue
import threading
import time


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """A deferred call: func(*args)."""
    func: Callable[..., Any]
    args: tuple = ()
    submitted_at: float = field(default_factory=time.monotonic)


class Worker(threading.Thread):
    """
    Runs tasks from the queue until it receives None, or until the pool
    lets it retire after ``idle_timeout`` seconds without work.
    """

    def __init__(self, pool: "ThreadPool", worker_id: int, idle_timeout: float):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)
        self.pool = pool
        self.task_queue = pool._task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout
        self.state = WorkerState.IDLE
        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while True:
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                if self.pool._retire(self):
                    break
                continue

            try:
                if task is None:
                    self.pool._remove(self)
                    break
                self.state = WorkerState.BUSY
                # Covers a task queued while this worker still looked idle.
                self.pool._maybe_scale_up()
                self._execute_task(task)
            finally:
                self.state = WorkerState.IDLE
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        # A failing task must not take the worker down with it.
        try:
            task.func(*task.args)
            self.tasks_completed += 1
        except Exception as e:
            logger.exception(f"Worker {self.worker_id} task failed: {e}")
            self.tasks_failed += 1


class ThreadPool:
    """
    Worker pool that scales between ``min_workers`` and ``max_workers``.

        pool = ThreadPool(min_workers=8, max_workers=128)
        pool.start()
        pool.submit(handle_connection, args=(conn,))
        pool.shutdown(wait=True, timeout=30.0)
    """

    def __init__(
        self,
        min_workers: int = 8,
        max_workers: int = 128,
        queue_size: int = 100,
        idle_timeout: float = 60.0,
    ):
        if min_workers < 1:
            raise ValueError("min_workers must be >= 1")
        if max_workers < min_workers:
            raise ValueError("max_workers must be >= min_workers")

        self.min_workers = min_workers
        self.max_workers = max_workers
        self.idle_timeout = idle_timeout

        self._task_queue: queue.Queue = queue.Queue(maxsize=queue_size)
        self._workers: List[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

        # Totals of workers that have already left the pool.
        self._retired_completed = 0
        self._retired_failed = 0

    def start(self):
        """Start ``min_workers`` workers. Calling it twice is a no-op."""
        with self._lock:
            if self._started:
                return
            logger.debug(f"Starting thread pool with {self.min_workers} workers")
            for _ in range(self.min_workers):
                self._add_worker()
            self._started = True

    def _add_worker(self) -> Worker:
        # Caller holds self._lock.
        worker = Worker(self, self._next_worker_id, self.idle_timeout)
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        block: bool = True,
        queue_timeout: Optional[float] = None,
    ) -> bool:
        """
        Queue func(*args) for a worker, adding a worker if all are busy.

        Returns:
            True if queued, False if the queue stayed full (only possible
            with block=False or a queue_timeout).

        Raises:
            RuntimeError: Pool not started or shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        self._maybe_scale_up()

        try:
            self._task_queue.put(Task(func, args), block=block, timeout=queue_timeout)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        """Spawn a worker if every worker is busy and a task is waiting."""
        with self._lock:
            if self._shutdown or len(self._workers) >= self.max_workers:
                return
            idle = sum(1 for w in self._workers if w.state == WorkerState.IDLE)
            if self._task_queue.qsize() > idle:
                logger.debug(
                    f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers"
                )
                self._add_worker()

    def _retire(self, worker: Worker) -> bool:
        """Let an idle worker exit if the pool is above min_workers."""
        with self._lock:
            if self._shutdown or len(self._workers) <= self.min_workers:
                return False
            if self._task_queue.qsize() > 0:
                return False
            self._forget(worker)
            logger.debug(f"Scaling down: worker {worker.worker_id} retired")
            return True

    def _remove(self, worker: Worker):
        with self._lock:
            self._forget(worker)

    def _forget(self, worker: Worker):
        # Caller holds self._lock.
        if worker in self._workers:
            self._workers.remove(worker)
            self._retired_completed += worker.tasks_completed
            self._retired_failed += worker.tasks_failed

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the pool.

        Args:
            wait: Let queued tasks run before the workers exit.
            timeout: Upper bound on the wait, in seconds.
        """
        with self._lock:
            if not self._started or self._shutdown:
                return
            self._shutdown = True
            workers = list(self._workers)

        logger.debug("Shutting down thread pool...")

        deadline = None if timeout is None else time.monotonic() + timeout

        if not wait:
            # Drop whatever has not started yet.
            while True:
                try:
                    self._task_queue.get_nowait()
                    self._task_queue.task_done()
                except queue.Empty:
                    break

        for _ in workers:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            try:
                self._task_queue.put(None, timeout=remaining)
            except queue.Full:
                logger.warning("Shutdown timeout, abandoning busy workers")
                break

        for worker in workers:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            worker.join(timeout=remaining)

        logger.debug("Thread pool stopped")

    @property
    def stats(self) -> dict:
        with self._lock:
            workers = list(self._workers)
            completed = self._retired_completed
            failed = self._retired_failed
        return {
            "workers": len(workers),
            "busy": sum(1 for w in workers if w.state == WorkerState.BUSY),
            "queued": self._task_queue.qsize(),
            "completed": completed + sum(w.tasks_completed for w in workers),
            "failed": failed + sum(w.tasks_failed for w in workers),
        }
