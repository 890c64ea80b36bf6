"""Async writer: decouples the ingest response from durable writes.

Bounded queue + worker threads: the ingest path enqueues a job (~0.01ms) and
answers as soon as in-memory state is committed; workers run the blocking
store calls. A failing job is logged and counted, never re-raised into the
request path.

Config: PERSIST_QUEUE_SIZE, PERSIST_NUM_WORKERS.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable, Tuple

from ..observability import PERSISTENCE_FAILURES, PERSIST_QUEUE_DEPTH

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1000
DEFAULT_NUM_WORKERS = 2


@dataclass(frozen=True)
class PersistJob:
    operation: str  # append|snapshot
    fn: Callable[..., Any]
    args: Tuple[Any, ...] = ()


class AsyncPersistenceWriter:
    """Queue + ThreadPool for fire-and-forget persistence.

    - ingest → submit() returns immediately
    - Worker threads → job.fn(*args) blocks on DB / disk (in parallel)
    - Bounded queue provides backpressure: when full the job is dropped
    """

    def __init__(
        self,
        max_queue_size: int = DEFAULT_QUEUE_SIZE,
        num_workers: int = DEFAULT_NUM_WORKERS,
    ):
        self._queue: "queue.Queue[PersistJob]" = queue.Queue(maxsize=max_queue_size)
        self._num_workers = max(1, int(num_workers))
        self._stop_event = threading.Event()

        # Metrics
        self._submitted = 0
        self._dropped = 0
        self._processed = 0
        self._errors = 0
        self._lock = threading.Lock()

        self._workers: list[threading.Thread] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        """Start worker threads."""
        if self._workers:
            return
        self._stop_event.clear()
        for i in range(self._num_workers):
            t = threading.Thread(
                target=self._worker_loop,
                args=(i,),
                daemon=True,
                name=f"persist-worker-{i}",
            )
            t.start()
            self._workers.append(t)
        logger.info(
            "[PERSIST] Started workers=%d queue_max=%d",
            self._num_workers, self._queue.maxsize,
        )

    def stop(self, drain: bool = True) -> None:
        """Stop workers. If drain=True, process remaining jobs first."""
        if drain and self._workers:
            self._queue.join()
        self._stop_event.set()
        for t in self._workers:
            t.join(timeout=5.0)
        self._workers.clear()
        logger.info("[PERSIST] Stopped. %s", self.metrics)

    def flush(self) -> None:
        """Block until every submitted job has been processed."""
        self._queue.join()

    def submit(self, operation: str, fn: Callable[..., Any], *args: Any) -> bool:
        """Enqueue a job. Returns False if the queue is full (job dropped)."""
        try:
            self._queue.put_nowait(PersistJob(operation=operation, fn=fn, args=args))
        except queue.Full:
            with self._lock:
                self._dropped += 1
            PERSISTENCE_FAILURES.labels(operation="enqueue").inc()
            logger.warning("[PERSIST] Queue full, dropped operation=%s", operation)
            return False

        with self._lock:
            self._submitted += 1
        PERSIST_QUEUE_DEPTH.set(self._queue.qsize())
        return True

    def _worker_loop(self, worker_id: int) -> None:
        while not self._stop_event.is_set():
            try:
                job = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue

            try:
                job.fn(*job.args)
                with self._lock:
                    self._processed += 1
            except Exception as e:
                with self._lock:
                    self._errors += 1
                PERSISTENCE_FAILURES.labels(operation=job.operation).inc()
                logger.error(
                    "[PERSIST] Worker %d %s failed: %s", worker_id, job.operation, e,
                )
            finally:
                self._queue.task_done()
                PERSIST_QUEUE_DEPTH.set(self._queue.qsize())

    @property
    def metrics(self) -> dict:
        with self._lock:
            return {
                "queue_depth": self._queue.qsize(),
                "queue_max": self._queue.maxsize,
                "submitted": self._submitted,
                "dropped": self._dropped,
                "processed": self._processed,
                "errors": self._errors,
            }
