"""
End‑to‑end tests for the orchestrator.

Most tests run real sandboxes; a few swap in recording backends to
observe how limits are derived and how faults are normalised.
"""

from __future__ import annotations

import sys
from concurrent.futures import ThreadPoolExecutor
from typing import List, Tuple

import pytest

from scriptexec.executor import (
    CodeExecutor,
    Completed,
    ErrorKind,
    Orchestrator,
    ResourceLimits,
    execute_code,
    resolve_language,
)
from scriptexec.executor.orchestrator import default_backends


@pytest.fixture
def orchestrator() -> Orchestrator:
    return Orchestrator(default_backends(sys.executable))


class RecordingBackend(CodeExecutor):
    memory_ceiling_mb = 8
    seen: List[ResourceLimits] = []

    def run(self, code: str, limits: ResourceLimits):
        RecordingBackend.seen.append(limits)
        return Completed(code.upper())

    def terminate(self) -> Tuple[str, ...]:
        return ()


@pytest.fixture(autouse=True)
def _reset_recording():
    RecordingBackend.seen = []
    yield


def test_embedded_console_log(orchestrator):
    result = orchestrator.execute("console.log('Result:', 2+2)", "javascript", 5000)
    assert result.success is True
    assert result.logs == ["Result: 4"]
    assert result.error is None
    assert result.language == "javascript"
    assert 0 <= result.execution_time_ms < 5000


def test_subprocess_print(orchestrator):
    result = orchestrator.execute("print('Hello'); result=5*5; print(result)", "python", 5000)
    assert result.success is True
    assert "Hello\n25" in result.output
    assert result.logs == []


def test_reference_error(orchestrator):
    result = orchestrator.execute("undefinedVariable.someMethod()", "javascript", 5000)
    assert result.success is False
    assert result.output is None
    assert "not defined" in result.error
    assert result.error_type is ErrorKind.SCRIPT_RUNTIME
    assert result.logs == []


def test_infinite_loop_times_out_near_deadline(orchestrator):
    result = orchestrator.execute("while(true){}", "javascript", 1000)
    assert result.success is False
    assert result.error == "Execution timeout"
    assert result.error_type is ErrorKind.TIMEOUT
    assert 950 <= result.execution_time_ms < 1600


def test_python_infinite_loop_times_out(orchestrator):
    result = orchestrator.execute("while True:\n    pass", "python", 1000)
    assert result.success is False
    assert result.error == "Execution timeout"
    assert result.logs == []
    assert result.execution_time_ms < 1600


def test_timeout_keeps_logs_for_embedded_backend(orchestrator):
    result = orchestrator.execute("console.log('working'); while(true){}", "js", 1000)
    assert result.error == "Execution timeout"
    assert result.logs == ["working"]


@pytest.mark.parametrize("code", ["", None])
def test_missing_code_is_rejected_without_a_sandbox(code):
    orchestrator = Orchestrator({"javascript": RecordingBackend})
    result = orchestrator.execute(code, "javascript", 5000)
    assert result.success is False
    assert result.error == "Code is required"
    assert result.error_type is ErrorKind.VALIDATION
    assert result.execution_time_ms == 0
    assert RecordingBackend.seen == []


def test_oversized_code_is_rejected():
    orchestrator = Orchestrator({"javascript": RecordingBackend})
    result = orchestrator.execute("x" * 10001, "javascript", 5000)
    assert result.error == "Code too long (max 10000 characters)"
    assert RecordingBackend.seen == []


def test_unsupported_language_creates_no_sandbox():
    orchestrator = Orchestrator({"javascript": RecordingBackend})
    result = orchestrator.execute("puts 1", "ruby", 5000)
    assert result.success is False
    assert result.error == "Unsupported language: ruby"
    assert result.error_type is ErrorKind.UNSUPPORTED_LANGUAGE
    assert result.language == "ruby"
    assert RecordingBackend.seen == []


@pytest.mark.parametrize("requested, clamped", [(50, 1000), (3000, 3000), (999999, 10000)])
def test_timeout_is_clamped(requested, clamped):
    orchestrator = Orchestrator({"javascript": RecordingBackend})
    result = orchestrator.execute("ok", "javascript", requested)
    assert result.success is True
    assert result.output == "OK"
    assert RecordingBackend.seen == [ResourceLimits(memory_ceiling_mb=8, timeout_ms=clamped)]


def test_factory_failure_is_reported_not_raised():
    def broken_factory():
        raise RuntimeError("no interpreter available")

    result = Orchestrator({"javascript": broken_factory}).execute("1", "javascript", 1000)
    assert result.success is False
    assert result.error_type is ErrorKind.BACKEND_FAULT
    assert "no interpreter available" in result.error


def test_missing_interpreter_is_a_backend_fault():
    result = Orchestrator(default_backends("/nonexistent/python")).execute("print(1)", "python", 1000)
    assert result.success is False
    assert result.error_type is ErrorKind.BACKEND_FAULT


def test_repeated_calls_are_independent(orchestrator):
    code = "if (typeof counter === 'undefined') { globalThis.counter = 0 } counter += 1; counter"
    first = orchestrator.execute(code, "javascript", 2000)
    second = orchestrator.execute(code, "javascript", 2000)
    assert first.output == second.output == "1"


def test_crash_in_one_call_does_not_affect_the_next(orchestrator):
    crashed = orchestrator.execute("import os; os.abort()", "python", 2000)
    healthy = orchestrator.execute("print('fine')", "python", 2000)
    assert crashed.success is False
    assert healthy.success is True
    assert healthy.output == "fine"


@pytest.mark.parametrize(
    "selector, expected",
    [("javascript", "javascript"), ("JS", "javascript"), (" py ", "python"), ("python", "python"), ("ruby", None)],
)
def test_resolve_language(selector, expected):
    assert resolve_language(selector) == expected


def test_result_serialisation_keeps_exactly_one_of_output_and_error(orchestrator):
    ok = orchestrator.execute("'fine'", "javascript", 1000).to_dict()
    failed = orchestrator.execute("throw new TypeError('nope')", "javascript", 1000).to_dict()
    assert "output" in ok and "error" not in ok
    assert "error" in failed and "output" not in failed
    for payload in (ok, failed):
        assert payload["logs"] == []
        assert payload["timestamp"].endswith("Z")
        assert isinstance(payload["executionTimeMs"], int)
    assert failed["errorType"] == "script_runtime_error"


def test_execute_code_helper():
    result = execute_code("[1, 2].map((n) => n * 2).join('-')")
    assert result.success is True
    assert result.output == "2-4"


def test_concurrent_executions_match_isolated_results(orchestrator):
    jobs = [
        ("console.log('job', 1)", "javascript", 10000),
        ("console.log('job', 2)", "js", 10000),
        ("globalThis.shared = (globalThis.shared || 0) + 1; shared", "javascript", 10000),
        ("print(6 * 7)", "python", 10000),
        ("print('py', 2)", "py", 10000),
        ("console.log('spin'); while(true){}", "javascript", 3000),
        ("while True:\n    pass", "python", 3000),
        ("throw new Error('boom')", "javascript", 10000),
    ]
    isolated = [orchestrator.execute(*job) for job in jobs]
    with ThreadPoolExecutor(max_workers=len(jobs)) as pool:
        concurrent = list(pool.map(lambda job: orchestrator.execute(*job), jobs))

    for alone, together in zip(isolated, concurrent):
        assert together.success == alone.success
        assert together.output == alone.output
        assert together.error == alone.error
        assert together.logs == alone.logs
        assert together.language == alone.language

    assert [r.logs for r in concurrent[:2]] == [["job 1"], ["job 2"]]
    assert concurrent[2].output == "1"
    assert concurrent[3].output == "42"
    assert concurrent[5].error == "Execution timeout"
    assert concurrent[5].logs == ["spin"]
    assert concurrent[6].error == "Execution timeout"
    assert "boom" in concurrent[7].error


def test_timeouts_do_not_cut_short_concurrent_runs(orchestrator):
    jobs = [("while(true){}", "javascript", 3000)] * 3 + [("print('done')", "python", 10000)]
    with ThreadPoolExecutor(max_workers=len(jobs)) as pool:
        results = list(pool.map(lambda job: orchestrator.execute(*job), jobs))
    for spun in results[:3]:
        assert spun.error == "Execution timeout"
        assert spun.execution_time_ms >= 2950
    assert results[3].success is True
    assert results[3].output == "done"
