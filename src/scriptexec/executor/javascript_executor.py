"""
Executor for running JavaScript inside an embedded QuickJS interpreter.

Every call starts a fresh child process (:mod:`.quickjs_host`) that owns
one :class:`quickjs.Context` whose allocator is capped at
``limits.memory_ceiling_mb``.  Keeping the interpreter in its own
process is what makes termination real: the wall-clock deadline and
:meth:`JavaScriptExecutor.terminate` both ``SIGKILL`` the child's
process group, which disposes the interpreter with everything it
allocated and cannot be caught by script code.  Each sandbox has its own
deadline timer, so concurrent runs never share a clock.

The interpreter has no I/O of its own.  ``console.*`` and ``print`` are
bound to a host function that streams one line per call back to the
parent, where it is appended to the backend's
:class:`~scriptexec.executor.capture.CaptureBuffer`.  Lines printed
before a timeout are therefore kept.  Arguments are converted with the
engine's own ``String()`` so the captured text matches what a
JavaScript runtime would print.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
import sys
import tempfile
import threading
from typing import Any, Dict, Optional, Tuple

from .base import (
    BackendFault,
    CodeExecutor,
    Completed,
    ErrorKind,
    ExecutionOutcome,
    Raised,
    ResourceLimits,
    TimedOut,
)
from .capture import CaptureBuffer
from .process import child_env, kill_process_group, limit_preexec


logger = logging.getLogger("scriptexec.executor.javascript")

HOST_SCRIPT = os.path.join(os.path.dirname(os.path.abspath(__file__)), "quickjs_host.py")


def _first_line(text: str) -> str:
    text = text.strip()
    return text.splitlines()[0] if text else ""


def _last_line(text: str) -> str:
    lines = [line for line in text.strip().splitlines() if line.strip()]
    return lines[-1].strip() if lines else ""


class JavaScriptExecutor(CodeExecutor):
    """Execute JavaScript in a per‑call, memory‑capped QuickJS process."""

    memory_ceiling_mb = 32
    max_stack_size = 512 * 1024

    def __init__(self, capture: Optional[CaptureBuffer] = None, executable: str = sys.executable) -> None:
        self.capture = capture if capture is not None else CaptureBuffer()
        self.executable = executable
        self._process: Optional[subprocess.Popen] = None
        self._lock = threading.Lock()
        self._terminated = False
        self._expired = False

    def run(self, code: str, limits: ResourceLimits) -> ExecutionOutcome:
        with tempfile.TemporaryDirectory(prefix="scriptexec-js-") as workdir:
            try:
                process = self._spawn(limits, workdir)
            except OSError as exc:
                logger.error("Failed to start JavaScript sandbox: %s", exc)
                return BackendFault(f"Failed to initialise JavaScript sandbox: {exc}")
            if process is None:
                return TimedOut(self.capture.freeze())

            deadline = threading.Timer(limits.timeout_seconds, self._expire, args=(process, limits))
            deadline.daemon = True
            deadline.start()
            try:
                final, stderr = self._exchange(process, code, limits)
            finally:
                deadline.cancel()
                self._reap(process)

        if self._terminated or (final is None and self._expired):
            return TimedOut(self.capture.freeze())
        if final is None:
            detail = _last_line(stderr) or f"exit code {process.returncode}"
            logger.error("JavaScript sandbox exited without a result: %s", detail)
            return BackendFault(f"JavaScript sandbox exited unexpectedly: {detail}", self.capture.freeze())
        if "error" in final:
            return self._classify(str(final["error"]), limits)
        lines = self.capture.lines
        output = "\n".join(lines) if lines else str(final.get("value", ""))
        return Completed(output, self.capture.freeze())

    def terminate(self) -> Tuple[str, ...]:
        with self._lock:
            first = not self._terminated
            self._terminated = True
            process = self._process
        if process is not None and process.poll() is None:
            logger.debug("Killing JavaScript sandbox %s", process.pid)
            kill_process_group(process)
        elif first:
            logger.debug("JavaScript sandbox marked for termination")
        return self.capture.freeze()

    def _spawn(self, limits: ResourceLimits, workdir: str) -> Optional[subprocess.Popen]:
        cpu_seconds = max(1, int(limits.timeout_seconds) + 1)
        with self._lock:
            if self._terminated:
                return None
            self._process = subprocess.Popen(  # nosec: B603 (controlled argv)
                [self.executable, "-I", HOST_SCRIPT],
                cwd=workdir,
                env=child_env(workdir),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=True,
                preexec_fn=limit_preexec(cpu_seconds) if os.name == "posix" else None,
            )
            return self._process

    def _exchange(
        self, process: subprocess.Popen, code: str, limits: ResourceLimits
    ) -> Tuple[Optional[Dict[str, Any]], str]:
        request = {
            "code": code,
            "memory_limit_bytes": limits.memory_ceiling_mb * 1024 * 1024,
            "max_stack_size": self.max_stack_size,
            "path": [entry for entry in sys.path if entry],
        }
        try:
            process.stdin.write(json.dumps(request).encode("utf-8"))
            process.stdin.close()
        except OSError:
            # killed before it read its request; reported from the flags below
            pass

        final: Optional[Dict[str, Any]] = None
        for raw in process.stdout:
            try:
                message = json.loads(raw)
            except ValueError:
                logger.debug("Ignoring malformed sandbox message %r", raw[:80])
                continue
            if "log" in message:
                self.capture.append(str(message["log"]))
            else:
                final = message
                break

        stderr = ""
        if final is None:
            process.wait()
            stderr = process.stderr.read().decode("utf-8", errors="replace")
        return final, stderr

    def _expire(self, process: subprocess.Popen, limits: ResourceLimits) -> None:
        with self._lock:
            self._expired = True
        if process.poll() is None:
            logger.info("JavaScript sandbox %s exceeded %sms; killing", process.pid, limits.timeout_ms)
            kill_process_group(process)

    def _classify(self, error: str, limits: ResourceLimits) -> ExecutionOutcome:
        message = _first_line(error) or "Error"
        logs = self.capture.freeze()
        if "out of memory" in message.lower():
            return Raised(
                f"Memory limit exceeded ({limits.memory_ceiling_mb} MB): {message}",
                logs,
                ErrorKind.MEMORY_LIMIT,
            )
        return Raised(message, logs)

    def _reap(self, process: subprocess.Popen) -> None:
        if process.poll() is None:
            kill_process_group(process)
        process.wait()
        for stream in (process.stdin, process.stdout, process.stderr):
            if stream is not None:
                stream.close()
        with self._lock:
            self._process = None
