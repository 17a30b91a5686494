# Overview: Bounded in-process worker pool for writes that run after the caller is acknowledged.

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait

from flask import Flask, current_app


class DeferredDispatcher:
    """
    Runs jobs out-of-band on a per-app ThreadPoolExecutor.

    Each job gets its own app context (and therefore its own db session).
    Jobs are fire-and-forget: exceptions that escape a job are logged and
    never propagate to the request that submitted it.

    With EVENTS_RUN_INLINE the job runs synchronously in the calling thread,
    still inside a fresh app context. Tests and local debugging use this.

    There is no persistence: jobs still queued when the process dies are lost.
    The event_failures table only covers jobs that ran and failed.
    """

    def __init__(self, app: Flask | None = None):
        self._executor: ThreadPoolExecutor | None = None
        self._pending: set[Future] = set()
        self._lock = threading.Lock()
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.config.setdefault("EVENT_WORKER_THREADS", 4)
        app.config.setdefault("EVENTS_RUN_INLINE", False)
        app.extensions["deferred_dispatcher"] = self

    def _get_executor(self, app: Flask) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=max(1, int(app.config["EVENT_WORKER_THREADS"])),
                    thread_name_prefix="pos-events",
                )
            return self._executor

    def submit(self, fn, *args, **kwargs) -> Future | None:
        """
        Schedule fn(*args, **kwargs) to run in its own app context.

        Returns the Future, or None when the job already ran inline.
        """
        app = current_app._get_current_object()
        if app.config.get("EVENTS_RUN_INLINE"):
            self._run(app, fn, args, kwargs)
            return None

        future = self._get_executor(app).submit(self._run, app, fn, args, kwargs)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    @staticmethod
    def _run(app: Flask, fn, args, kwargs) -> None:
        with app.app_context():
            try:
                fn(*args, **kwargs)
            except Exception:
                app.logger.exception("Deferred job %s crashed", getattr(fn, "__name__", fn))

    def drain(self, timeout: float | None = None) -> bool:
        """Wait for every submitted job; True when none is left running."""
        with self._lock:
            pending = set(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_jobs: bool = True) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait_for_jobs)
