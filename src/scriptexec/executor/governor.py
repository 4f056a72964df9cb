"""
Deadline enforcement shared by every backend.

:class:`TimeoutGovernor` runs ``backend.run`` on a dedicated worker
thread and waits for it with the request deadline.  If the backend
finishes first its outcome is returned unchanged.  If the deadline
fires first the backend is terminated, whatever it captured up to that
point is drained, and :class:`~scriptexec.executor.base.TimedOut` is
returned.  In both cases ``backend.terminate()`` is invoked before the
governor returns, which is why backends must make it idempotent.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict

from .base import BackendFault, CodeExecutor, ExecutionOutcome, ResourceLimits, TimedOut


logger = logging.getLogger("scriptexec.executor.governor")


class TimeoutGovernor:
    """Race a backend against a wall‑clock deadline."""

    #: Upper bound on how long to wait for a terminated backend to unwind.
    teardown_grace_seconds = 0.25

    def __init__(self, teardown_grace_seconds: float | None = None) -> None:
        if teardown_grace_seconds is not None:
            self.teardown_grace_seconds = teardown_grace_seconds

    def run_with_deadline(self, backend: CodeExecutor, code: str, limits: ResourceLimits) -> ExecutionOutcome:
        finished = threading.Event()
        box: Dict[str, ExecutionOutcome] = {}

        def _target() -> None:
            try:
                box["outcome"] = backend.run(code, limits)
            except Exception as exc:
                logger.exception("Backend %s raised: %s", type(backend).__name__, exc)
                box["outcome"] = BackendFault(f"Internal sandbox error: {exc}")
            finally:
                finished.set()

        worker = threading.Thread(target=_target, name=f"scriptexec-{type(backend).__name__}", daemon=True)
        worker.start()

        if finished.wait(limits.timeout_seconds):
            backend.terminate()
            return box["outcome"]

        logger.warning(
            "%s exceeded deadline of %sms; terminating", type(backend).__name__, limits.timeout_ms
        )
        partial_logs = backend.terminate()
        worker.join(self.teardown_grace_seconds)
        if worker.is_alive():
            logger.warning("%s still unwinding after termination", type(backend).__name__)
        return TimedOut(partial_logs)
