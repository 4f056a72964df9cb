"""Script execution service package.

This package runs untrusted JavaScript and Python snippets under hard
memory and wall‑clock limits and returns a normalised result.  It ships
both the execution core and the HTTP service that exposes it.

The top‑level modules include:

* ``executor`` – isolation backends, the timeout governor and the orchestrator.
* ``config`` – configuration handling for environment variables.
* ``models`` – Pydantic models defining request and response schemas.
* ``ratelimit`` – per‑client fixed‑window request limiting.
* ``notify`` – fire‑and‑forget webhook and Slack notifications.
* ``api`` – FastAPI application exposing HTTP endpoints.
"""

__version__ = "1.0.0"
