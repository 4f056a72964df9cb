"""
Base interfaces and dataclasses for isolation backends.

All concrete backends inherit from :class:`CodeExecutor` and implement
:meth:`~CodeExecutor.run` and :meth:`~CodeExecutor.terminate`.  A
backend instance is created for exactly one execution and is never
reused; it owns whatever sandbox it creates (an embedded interpreter
context or an OS process) and must release it on every exit path.

``run`` returns an :data:`ExecutionOutcome`, a small tagged union that
is later normalised by the orchestrator into an :class:`ExecutionResult`.
"""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Union


MIN_TIMEOUT_MS = 1000
MAX_TIMEOUT_MS = 10000
DEFAULT_TIMEOUT_MS = 5000
MAX_CODE_LENGTH = 10000

TIMEOUT_MESSAGE = "Execution timeout"


class ErrorKind(str, enum.Enum):
    """Classification attached to every failed result."""

    VALIDATION = "validation_error"
    UNSUPPORTED_LANGUAGE = "unsupported_language"
    SCRIPT_RUNTIME = "script_runtime_error"
    MEMORY_LIMIT = "memory_limit_exceeded"
    PROCESS_EXIT = "process_exit_error"
    TIMEOUT = "timeout"
    BACKEND_FAULT = "backend_fault"


def clamp_timeout(timeout_ms: int) -> int:
    """Clamp a caller supplied timeout into ``[MIN_TIMEOUT_MS, MAX_TIMEOUT_MS]``."""
    return min(max(int(timeout_ms), MIN_TIMEOUT_MS), MAX_TIMEOUT_MS)


@dataclass(frozen=True)
class ResourceLimits:
    """Limits applied to a single execution.

    Attributes
    ----------
    memory_ceiling_mb: int
        Memory available to the sandbox.  The embedded backend hands
        this to the interpreter's allocator; the subprocess backend
        applies it as ``RLIMIT_AS``.
    timeout_ms: int
        Wall‑clock deadline, already clamped.
    max_code_length: int
        Largest accepted source text, in characters.
    """

    memory_ceiling_mb: int
    timeout_ms: int
    max_code_length: int = MAX_CODE_LENGTH

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


@dataclass(frozen=True)
class Completed:
    output: str
    logs: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Raised:
    error: str
    logs: Tuple[str, ...] = ()
    kind: ErrorKind = ErrorKind.SCRIPT_RUNTIME


@dataclass(frozen=True)
class TimedOut:
    logs: Tuple[str, ...] = ()


@dataclass(frozen=True)
class BackendFault:
    detail: str
    logs: Tuple[str, ...] = ()


ExecutionOutcome = Union[Completed, Raised, TimedOut, BackendFault]


def utc_timestamp() -> str:
    """Return the current UTC time as an ISO‑8601 string with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


@dataclass
class ExecutionResult:
    """Normalised result returned for every execution request.

    Exactly one of ``output`` and ``error`` is set, depending on
    ``success``.  ``logs`` is always present and ``execution_time_ms``
    covers dispatch through teardown.
    """

    success: bool
    language: str
    execution_time_ms: int
    logs: list[str] = field(default_factory=list)
    output: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[ErrorKind] = None
    timestamp: str = field(default_factory=utc_timestamp)

    @classmethod
    def from_outcome(
        cls, outcome: ExecutionOutcome, language: str, execution_time_ms: int
    ) -> "ExecutionResult":
        elapsed = max(0, int(execution_time_ms))
        if isinstance(outcome, Completed):
            return cls(True, language, elapsed, list(outcome.logs), output=outcome.output)
        if isinstance(outcome, Raised):
            return cls(False, language, elapsed, list(outcome.logs), error=outcome.error, error_type=outcome.kind)
        if isinstance(outcome, TimedOut):
            return cls(
                False, language, elapsed, list(outcome.logs), error=TIMEOUT_MESSAGE, error_type=ErrorKind.TIMEOUT
            )
        return cls(
            False, language, elapsed, list(outcome.logs), error=outcome.detail, error_type=ErrorKind.BACKEND_FAULT
        )

    @classmethod
    def failure(
        cls, error: str, kind: ErrorKind, language: str, execution_time_ms: int = 0
    ) -> "ExecutionResult":
        return cls(False, language, max(0, int(execution_time_ms)), [], error=error, error_type=kind)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise with the camelCase keys used on the wire, omitting unset fields."""
        data: Dict[str, Any] = {"success": self.success}
        if self.success:
            data["output"] = self.output if self.output is not None else ""
        else:
            data["error"] = self.error or ""
            if self.error_type is not None:
                data["errorType"] = self.error_type.value
        data["logs"] = list(self.logs)
        data["language"] = self.language
        data["executionTimeMs"] = self.execution_time_ms
        data["timestamp"] = self.timestamp
        return data


class CodeExecutor(abc.ABC):
    """
    Abstract base class for isolation backends.

    A backend is single use: construct it, call :meth:`run` once, and
    call :meth:`terminate` (any number of times, from any thread) to make
    sure nothing it created outlives the request.
    """

    #: Memory ceiling used when the orchestrator builds limits for this family.
    memory_ceiling_mb: int = 64

    @abc.abstractmethod
    def run(self, code: str, limits: ResourceLimits) -> ExecutionOutcome:
        """Execute ``code`` under ``limits``.

        Parameters
        ----------
        code: str
            The untrusted source text.
        limits: ResourceLimits
            Memory and time bounds for this call.

        Returns
        -------
        ExecutionOutcome
            ``Completed``, ``Raised``, ``TimedOut`` or ``BackendFault``.
            Implementations report failures through the outcome instead
            of raising.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def terminate(self) -> Tuple[str, ...]:
        """Forcefully tear down the sandbox.

        Must be idempotent and safe to call after :meth:`run` already
        returned.  Returns the captured lines that survive the kill
        (possibly empty).
        """
        raise NotImplementedError
