"""
Execution core: isolation backends, deadline governor and orchestrator.

Two backend families implement the ``CodeExecutor`` interface from
``base.py``: ``JavaScriptExecutor`` evaluates code in an embedded,
memory‑capped QuickJS context and ``PythonExecutor`` runs code in an
external interpreter process.  ``Orchestrator`` selects the backend for
a language, drives it through a ``TimeoutGovernor`` and returns an
``ExecutionResult``.
"""

from .base import (
    BackendFault,
    CodeExecutor,
    Completed,
    ErrorKind,
    ExecutionOutcome,
    ExecutionResult,
    Raised,
    ResourceLimits,
    TimedOut,
)
from .capture import CaptureBuffer
from .governor import TimeoutGovernor
from .javascript_executor import JavaScriptExecutor
from .orchestrator import Orchestrator, execute_code, resolve_language
from .python_executor import PythonExecutor

__all__ = [
    "BackendFault",
    "CaptureBuffer",
    "CodeExecutor",
    "Completed",
    "ErrorKind",
    "ExecutionOutcome",
    "ExecutionResult",
    "JavaScriptExecutor",
    "Orchestrator",
    "PythonExecutor",
    "Raised",
    "ResourceLimits",
    "TimedOut",
    "TimeoutGovernor",
    "execute_code",
    "resolve_language",
]
