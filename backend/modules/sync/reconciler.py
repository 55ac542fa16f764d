"""
modules/sync/reconciler.py
----------------------------
Optimistic sync: the local edit has already happened; this module tells the
server about it and folds the server's answer back in.

  submit(request)
      → backend.send(request) on the single background worker
      → success: SyncPatch handed to ``apply_patch`` (PlanningSession)
      → failure: logged as a warning; the optimistic state stays as is,
                 nothing is retried and nothing is rolled back

One worker thread means requests run in submission order, so a patch never
lands before the edit that created its cluster has been reported, and two
patches for the same plan never race each other.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Optional, Protocol

import requests

from modules.observability.logger import StructuredLogger
from modules.sync.models import SyncError, SyncPatch, SyncRequest

logger = logging.getLogger(__name__)


class SyncBackend(Protocol):
    def send(self, request: SyncRequest) -> Optional[SyncPatch]: ...


class SyncReconciler:
    """Single-worker queue between a PlanningSession and its SyncBackend."""

    def __init__(
        self,
        backend: SyncBackend,
        apply_patch: Callable[[SyncPatch], bool],
        perf_logger: Optional[StructuredLogger] = None,
    ) -> None:
        self._backend = backend
        self._apply_patch = apply_patch
        self._perf_logger = perf_logger or StructuredLogger()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="plan-sync")
        self._lock = threading.Lock()
        self._pending: set[Future] = set()
        self.failures = 0

    def submit(self, request: SyncRequest) -> Future:
        future = self._executor.submit(self._run, request)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Block until every submitted request has finished; False on timeout."""
        with self._lock:
            pending = set(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_pending: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_pending)

    # ── internals ─────────────────────────────────────────────────────────

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _run(self, request: SyncRequest) -> Optional[SyncPatch]:
        t0 = time.perf_counter()
        try:
            patch = self._backend.send(request)
        except (requests.RequestException, SyncError) as exc:
            self._fail(request, "failed", exc)
            return None
        except Exception as exc:
            # storage errors from the local backend (psycopg2, redis) and the like
            self._fail(request, "failed", exc, exc_info=True)
            return None

        self._perf_logger.log(request.plan_id, "PERFORMANCE", {
            "stage": f"sync_{request.kind.value}",
            "latency_ms": round((time.perf_counter() - t0) * 1000, 2),
        })
        if patch is None:
            return None
        try:
            self._apply_patch(patch)
        except Exception as exc:
            self._fail(request, "patch could not be applied", exc, exc_info=True)
            return None
        return patch

    def _fail(self, request: SyncRequest, what: str, exc: Exception, exc_info: bool = False) -> None:
        self.failures += 1
        logger.warning(
            "Sync %s for plan %s %s; keeping local state: %s",
            request.kind.value, request.plan_id, what, exc,
            exc_info=exc_info,
        )
