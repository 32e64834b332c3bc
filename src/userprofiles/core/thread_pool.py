"""
=============================================================================
THREAD POOL
=============================================================================

A fixed set of worker threads pulling connection tasks from a bounded
queue, growing up to max_workers when every worker is busy.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   accept loop ──submit()──► ┌───────────────────┐                    │
    │                             │   Task queue      │  (bounded)         │
    │                             └─────────┬─────────┘                    │
    │                      ┌────────────────┼────────────────┐             │
    │                      ▼                ▼                ▼             │
    │                 Worker-0         Worker-1   ...   Worker-N           │
    │                 handle conn      handle conn      handle conn        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A full queue makes submit() return False so the caller can answer 503
instead of blocking the accept loop.

Shutdown puts one None ("poison pill") per worker on the queue; a worker
exits when it takes one.

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional
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
    """
    A deferred call.

    timeout is a queueing deadline: a task that waited longer than this
    before a worker picked it up is dropped, not run late. on_drop is
    called instead, so whatever the task owned can be released.
    """

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    timeout: Optional[float] = None
    on_drop: Optional[Callable[[], Any]] = None
    submitted_at: float = field(default_factory=time.time)

    @property
    def is_stale(self) -> bool:
        return bool(self.timeout) and time.time() - self.submitted_at > self.timeout


class Worker(threading.Thread):
    """Daemon thread running tasks until it receives a poison pill."""

    def __init__(self, task_queue: queue.Queue, worker_id: int, idle_timeout: float = 60.0):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)

        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._shutdown.is_set():
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if task is None:
                    break
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task) -> None:
        self.state = WorkerState.BUSY
        start_time = time.time()

        try:
            if task.is_stale:
                logger.warning(
                    f"Task dropped after waiting {start_time - task.submitted_at:.2f}s "
                    f"(timeout {task.timeout}s)"
                )
                self.tasks_failed += 1
                if task.on_drop is not None:
                    task.on_drop()
                return

            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
            logger.debug(f"Worker {self.worker_id} completed task in {time.time() - start_time:.3f}s")

        except Exception as e:
            # A failing task must not take the worker down with it
            logger.exception(f"Worker {self.worker_id} task failed: {e}")
            self.tasks_failed += 1

        finally:
            self.state = WorkerState.IDLE

    def shutdown(self) -> None:
        self._shutdown.set()


class ThreadPool:
    """
    Bounded worker pool.

        pool = ThreadPool(min_workers=4, max_workers=16)
        pool.start()
        accepted = pool.submit(handle_connection, args=(conn,))
        pool.shutdown(wait=True, timeout=5.0)
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        max_queue_size: int = 100,
        idle_timeout: float = 60.0,
    ):
        if min_workers < 1 or max_workers < min_workers:
            raise ValueError("need 1 <= min_workers <= max_workers")

        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue_size = max_queue_size
        self.idle_timeout = idle_timeout

        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=max_queue_size)
        self._workers: list[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    def start(self) -> None:
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers")
        self._shutdown = False
        with self._lock:
            for _ in range(self.min_workers):
                self._spawn_worker()
        self._started = True

    def _spawn_worker(self) -> Worker:
        # Caller holds self._lock
        worker = Worker(self._task_queue, self._next_worker_id, self.idle_timeout)
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        timeout: Optional[float] = None,
        on_drop: Optional[Callable[[], Any]] = None,
    ) -> bool:
        """
        Queue a task without blocking.

        on_drop runs in place of func if the task outlives timeout in
        the queue.

        Returns:
            True if queued, False if the queue is full.

        Raises:
            RuntimeError: Pool not started or shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        task = Task(
            func=func,
            args=args,
            kwargs=kwargs or {},
            timeout=timeout,
            on_drop=on_drop,
        )

        try:
            self._task_queue.put(task, block=False)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self) -> None:
        """One more worker when all are busy and work is waiting."""
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return
            if self.busy_workers < len(self._workers):
                return
            if self._task_queue.qsize() == 0:
                return

            logger.debug(f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers")
            self._spawn_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """
        Stop accepting tasks, optionally let queued ones finish, then stop
        every worker.
        """
        if not self._started:
            return

        logger.info("Shutting down thread pool...")
        self._shutdown = True

        if wait:
            deadline = time.time() + timeout if timeout else None
            while not self._task_queue.empty():
                if deadline and time.time() > deadline:
                    logger.warning("Shutdown timeout, forcing stop")
                    break
                time.sleep(0.05)

        with self._lock:
            workers = list(self._workers)
            self._workers.clear()

        for _ in workers:
            try:
                self._task_queue.put(None, block=False)
            except queue.Full:
                break

        for worker in workers:
            worker.shutdown()
            worker.join(timeout=2.0)

        self._started = False
        logger.info("Thread pool shutdown complete")

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def queue_size(self) -> int:
        return self._task_queue.qsize()

    @property
    def stats(self) -> dict:
        workers = list(self._workers)
        return {
            "workers": {
                "total": len(workers),
                "busy": sum(1 for w in workers if w.state == WorkerState.BUSY),
                "idle": sum(1 for w in workers if w.state == WorkerState.IDLE),
            },
            "tasks": {
                "queued": self._task_queue.qsize(),
                "completed": sum(w.tasks_completed for w in workers),
                "failed": sum(w.tasks_failed for w in workers),
            },
        }
