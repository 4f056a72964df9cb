"""
Helpers shared by the backends that run code in a child process.

Both backends start their child in its own session with a scrubbed
environment and POSIX resource limits applied before ``exec``, and both
stop it with ``SIGKILL`` to the whole process group.
"""

from __future__ import annotations

import os
import signal
import subprocess
from typing import Callable, Dict, Optional

try:  # POSIX resource limits (best-effort)
    import resource  # type: ignore
except ImportError:  # pragma: no cover - non-POSIX
    resource = None  # type: ignore[assignment]


MAX_FILE_SIZE_BYTES = 16 * 1024 * 1024
MAX_OPEN_FILES = 64


def limit_preexec(cpu_time_sec: int, memory_limit_mb: Optional[int] = None) -> Callable[[], None]:
    """Build a ``preexec_fn`` applying CPU, file and (optionally) address space limits."""

    def _apply() -> None:  # executed in child before exec
        if resource is None:
            return
        limits = [
            (resource.RLIMIT_CPU, cpu_time_sec),
            (resource.RLIMIT_FSIZE, MAX_FILE_SIZE_BYTES),
            (resource.RLIMIT_NOFILE, MAX_OPEN_FILES),
        ]
        if memory_limit_mb is not None:
            limits.append((resource.RLIMIT_AS, memory_limit_mb * 1024 * 1024))
        for which, value in limits:
            try:
                resource.setrlimit(which, (value, value))
            except (ValueError, OSError):
                pass

    return _apply


def child_env(workdir: str) -> Dict[str, str]:
    """Minimal environment for a sandbox child; service secrets never reach it."""
    return {
        "PATH": os.environ.get("PATH", "/usr/local/bin:/usr/bin:/bin"),
        "HOME": workdir,
        "LANG": "C.UTF-8",
        "LC_ALL": "C.UTF-8",
    }


def kill_process_group(process: subprocess.Popen) -> None:
    """SIGKILL the child's process group, then the child itself."""
    if os.name == "posix":
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            pass
    try:
        process.kill()
    except ProcessLookupError:
        pass
