"""
Top‑level entry point of the execution core.

``Orchestrator.execute`` turns ``(code, language, timeout_ms)`` into an
:class:`~scriptexec.executor.base.ExecutionResult`.  It never raises:
unknown languages, bad input and unexpected faults all come back as a
failed result.  A new backend and a new governor are created for every
call so that no interpreter context or process is shared between
requests.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Mapping, Optional

from .base import (
    DEFAULT_TIMEOUT_MS,
    MAX_CODE_LENGTH,
    CodeExecutor,
    ErrorKind,
    ExecutionResult,
    ResourceLimits,
    clamp_timeout,
)
from .governor import TimeoutGovernor
from .javascript_executor import JavaScriptExecutor
from .python_executor import PythonExecutor


logger = logging.getLogger("scriptexec.executor")

BackendFactory = Callable[[], CodeExecutor]

LANGUAGE_ALIASES: Dict[str, str] = {
    "javascript": "javascript",
    "js": "javascript",
    "python": "python",
    "py": "python",
}


def resolve_language(language: str) -> Optional[str]:
    """Map a caller supplied selector to a canonical language name."""
    if not isinstance(language, str):
        return None
    return LANGUAGE_ALIASES.get(language.strip().lower())


def default_backends(python_executable: str = "python3") -> Dict[str, BackendFactory]:
    return {
        "javascript": JavaScriptExecutor,
        "python": lambda: PythonExecutor(executable=python_executable),
    }


class Orchestrator:
    """Validate, dispatch and normalise one execution at a time."""

    def __init__(
        self,
        backends: Optional[Mapping[str, BackendFactory]] = None,
        governor_factory: Callable[[], TimeoutGovernor] = TimeoutGovernor,
    ) -> None:
        self.backends = dict(backends) if backends is not None else default_backends()
        self.governor_factory = governor_factory

    def execute(self, code: str, language: str = "javascript", timeout_ms: int = DEFAULT_TIMEOUT_MS) -> ExecutionResult:
        start = time.perf_counter()
        try:
            result = self._execute(code, language, timeout_ms, start)
        except Exception as exc:
            logger.exception("Unexpected failure while executing %s code: %s", language, exc)
            result = ExecutionResult.failure(
                f"Internal execution error: {exc}", ErrorKind.BACKEND_FAULT, str(language), _elapsed_ms(start)
            )
        logger.info("Code execution completed in %sms", result.execution_time_ms)
        return result

    def _execute(self, code: str, language: str, timeout_ms: int, start: float) -> ExecutionResult:
        if not isinstance(code, str) or not code:
            return ExecutionResult.failure("Code is required", ErrorKind.VALIDATION, str(language))
        if len(code) > MAX_CODE_LENGTH:
            return ExecutionResult.failure(
                f"Code too long (max {MAX_CODE_LENGTH} characters)", ErrorKind.VALIDATION, str(language)
            )

        canonical = resolve_language(language)
        if canonical is None or canonical not in self.backends:
            logger.warning("Unsupported language requested: %s", language)
            return ExecutionResult.failure(
                f"Unsupported language: {language}", ErrorKind.UNSUPPORTED_LANGUAGE, str(language), _elapsed_ms(start)
            )

        backend = self.backends[canonical]()
        limits = ResourceLimits(memory_ceiling_mb=backend.memory_ceiling_mb, timeout_ms=clamp_timeout(timeout_ms))
        logger.debug("Dispatching %s code to %s with %s", canonical, type(backend).__name__, limits)

        outcome = self.governor_factory().run_with_deadline(backend, code, limits)
        return ExecutionResult.from_outcome(outcome, language, _elapsed_ms(start))


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def execute_code(code: str, language: str = "javascript", timeout_ms: int = DEFAULT_TIMEOUT_MS) -> ExecutionResult:
    """Run ``code`` with a fresh :class:`Orchestrator` using the default backends."""
    return Orchestrator().execute(code, language, timeout_ms)
