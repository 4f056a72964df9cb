"""
Child process entry point for the embedded JavaScript backend.

Run as ``python -I quickjs_host.py``.  Reads one JSON request from
stdin::

    {"code": "...", "memory_limit_bytes": 33554432,
     "max_stack_size": 524288, "path": [...]}

and writes newline delimited JSON messages to stdout: one
``{"log": line}`` per ``console.*``/``print`` call, as it happens, then
exactly one ``{"value": text}`` or ``{"error": message}``.

The interpreter has no wall-clock limit of its own; the parent kills
this process when the deadline passes.  Only the standard library and
``quickjs`` are imported so the script runs without the service package
on ``sys.path``.
"""

import json
import sys


CAPTURE_INTRINSIC = "__scriptexec_capture"

CONSOLE_BOOTSTRAP = """
(function (capture) {
  const write = (...args) => capture(args.map((arg) => String(arg)).join(' '));
  globalThis.global = globalThis;
  globalThis.console = { log: write, info: write, warn: write, error: write, debug: write };
  globalThis.print = write;
})(globalThis.%s);
""" % CAPTURE_INTRINSIC


def emit(message):
    sys.stdout.write(json.dumps(message) + "\n")
    sys.stdout.flush()


def capture(line):
    emit({"log": str(line)})


def main():
    request = json.loads(sys.stdin.read())
    sys.path.extend(entry for entry in request.get("path", []) if entry not in sys.path)

    import quickjs

    context = quickjs.Context()
    context.set_memory_limit(request["memory_limit_bytes"])
    context.set_max_stack_size(request["max_stack_size"])
    context.add_callable(CAPTURE_INTRINSIC, capture)
    context.eval(CONSOLE_BOOTSTRAP)

    try:
        value = context.eval(request["code"])
        # undefined and null both arrive as None and render as empty output
        rendered = "" if value is None else str(context.get("String")(value))
    except quickjs.JSException as exc:
        emit({"error": str(exc)})
    else:
        emit({"value": rendered})
    return 0


if __name__ == "__main__":
    sys.exit(main())
