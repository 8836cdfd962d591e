"""
=============================================================================
WORKER THREAD POOL
=============================================================================

Connections are served by a fixed-floor, bounded-ceiling pool of threads.

    accept thread ──submit()──► [ bounded queue ] ──get()──► Worker-0
                                                        └──► Worker-1
                                                        └──► ...

    - min_workers threads start with the pool and live until shutdown
    - when every worker is busy and work is waiting, one more is spawned,
      up to max_workers
    - the queue holds at most queue_size tasks; a non-blocking submit()
      into a full queue returns False and the server answers 503

Request handling here is blocking socket I/O plus a few microseconds of
dict work under the store lock, so threads are the right tool: the GIL is
released while a worker waits on recv()/sendall().

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """
    A deferred call. ``timeout`` is a staleness limit: a task that sat in
    the queue longer than that is dropped instead of run, and ``on_drop``
    (if given) is called in its place so the caller can release whatever
    the task owned.
    """

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    timeout: Optional[float] = None
    submitted_at: float = field(default_factory=time.time)
    on_drop: Optional[Callable[[], Any]] = None


class Worker(threading.Thread):
    """Pulls tasks off the shared queue until it receives ``None``."""

    def __init__(self, task_queue: "queue.Queue[Optional[Task]]", worker_id: int,
                 idle_timeout: float = 60.0):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

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

    def _execute_task(self, task: Task):
        self.state = WorkerState.BUSY
        start_time = time.time()

        try:
            waited = start_time - task.submitted_at
            if task.timeout and waited > task.timeout:
                logger.warning(
                    f"Task timed out before execution "
                    f"(waited {waited:.2f}s, timeout was {task.timeout}s)"
                )
                if task.on_drop is not None:
                    task.on_drop()
                return

            task.func(*task.args, **task.kwargs)
            logger.debug(f"Worker {self.worker_id} completed task in {time.time() - start_time:.3f}s")

        except Exception as e:
            # One bad task must not take the worker down with it
            logger.exception(f"Worker {self.worker_id} task failed: {e}")

        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        self._shutdown.set()


class ThreadPool:
    """
    Bounded thread pool.

        pool = ThreadPool(min_workers=2, max_workers=8, queue_size=50)
        pool.start()
        pool.submit(handle, args=(conn,), block=False)   # False when full
        pool.shutdown(wait=True, timeout=30.0)
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        queue_size: int = 100,
        idle_timeout: float = 60.0,
    ):
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue_size = queue_size
        self.idle_timeout = idle_timeout

        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=queue_size)

        self._workers: list[Worker] = []
        self._lock = threading.Lock()  # guards _workers
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    @property
    def is_running(self) -> bool:
        return self._started and not self._shutdown

    def start(self):
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers")
        self._shutdown = False
        with self._lock:
            for _ in range(self.min_workers):
                self._add_worker()
        self._started = True

    def _add_worker(self) -> Worker:
        # Caller holds self._lock
        worker = Worker(
            task_queue=self._task_queue,
            worker_id=self._next_worker_id,
            idle_timeout=self.idle_timeout,
        )
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
        block: bool = True,
        queue_timeout: Optional[float] = None,
        on_drop: Optional[Callable[[], Any]] = None,
    ) -> bool:
        """
        Queue ``func(*args, **kwargs)``.

        If the task waits longer than ``timeout`` seconds before a worker
        picks it up, ``on_drop()`` runs instead of ``func``.

        Returns:
            True once queued; False if the queue stayed full (immediately
            with ``block=False``, after ``queue_timeout`` otherwise).

        Raises:
            RuntimeError: The pool is not running.
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
            self._task_queue.put(task, block=block, timeout=queue_timeout)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return
            busy = sum(1 for w in self._workers if w.state == WorkerState.BUSY)
            if busy == len(self._workers) and self._task_queue.qsize() > 0:
                logger.debug(f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers")
                self._add_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the pool.

        With ``wait`` the queued tasks are given up to ``timeout`` seconds
        to drain (forever when ``timeout`` is None); then every worker gets
        a ``None`` poison pill and is joined.
        """
        if not self._started:
            return

        logger.info("Shutting down thread pool...")
        self._shutdown = True

        if wait:
            if timeout is None:
                self._task_queue.join()
            else:
                deadline = time.time() + timeout
                while not self._task_queue.empty():
                    if time.time() > deadline:
                        logger.warning("Shutdown timeout, forcing stop")
                        break
                    time.sleep(0.1)

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
