"""
Executor for running Python code in a separate interpreter process.

The code is passed straight to ``python -I -c`` (no script file is
written).  The child runs in a throwaway working directory, in its own
session, with stdin closed, a scrubbed environment and POSIX resource
limits applied before ``exec``.  Standard output and error are captured
as bytes and decoded once the process has exited.

Termination is always ``SIGKILL`` to the child's process group: the
code is untrusted and may trap cooperative signals.  Output of a killed
process is discarded.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
import threading
from typing import Optional, Tuple

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
from .capture import DEFAULT_MAX_BYTES, truncate_bytes
from .process import child_env, kill_process_group, limit_preexec


logger = logging.getLogger("scriptexec.executor.python")


class PythonExecutor(CodeExecutor):
    """Execute Python code with an external interpreter process."""

    memory_ceiling_mb = 256

    def __init__(self, executable: str = "python3", max_output_bytes: int = DEFAULT_MAX_BYTES) -> None:
        self.executable = executable
        self.max_output_bytes = max_output_bytes
        self._process: Optional[subprocess.Popen] = None
        self._lock = threading.Lock()
        self._terminated = False

    def run(self, code: str, limits: ResourceLimits) -> ExecutionOutcome:
        with tempfile.TemporaryDirectory(prefix="scriptexec-") as workdir:
            try:
                process = self._spawn(code, limits, workdir)
            except OSError as exc:
                logger.error("Failed to start %s: %s", self.executable, exc)
                return BackendFault(f"Failed to start Python interpreter: {exc}")
            if process is None:
                return TimedOut()

            try:
                stdout, stderr = process.communicate(timeout=limits.timeout_seconds)
            except subprocess.TimeoutExpired:
                logger.info("Python process %s exceeded %sms; killing", process.pid, limits.timeout_ms)
                kill_process_group(process)
                process.communicate()
                return TimedOut()
            finally:
                self._reap(process)

        if self._terminated:
            return TimedOut()

        exit_code = process.returncode
        if exit_code == 0:
            return Completed(truncate_bytes(stdout or b"", self.max_output_bytes).strip())
        error = truncate_bytes(stderr or b"", self.max_output_bytes).strip()
        return Raised(error or f"Process exited with code {exit_code}", kind=ErrorKind.PROCESS_EXIT)

    def terminate(self) -> Tuple[str, ...]:
        with self._lock:
            self._terminated = True
            process = self._process
        if process is not None and process.poll() is None:
            logger.warning("Killing Python process %s", process.pid)
            kill_process_group(process)
        return ()

    def _spawn(self, code: str, limits: ResourceLimits, workdir: str) -> Optional[subprocess.Popen]:
        cpu_seconds = max(1, int(limits.timeout_seconds) + 1)
        with self._lock:
            if self._terminated:
                return None
            self._process = subprocess.Popen(  # nosec: B603 (controlled argv)
                [self.executable, "-I", "-c", code],
                cwd=workdir,
                env=child_env(workdir),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=True,
                preexec_fn=limit_preexec(cpu_seconds, limits.memory_ceiling_mb) if os.name == "posix" else None,
            )
            return self._process

    def _reap(self, process: subprocess.Popen) -> None:
        if process.poll() is None:
            kill_process_group(process)
        process.wait()
        with self._lock:
            self._process = None
