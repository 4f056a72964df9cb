"""
FastAPI application for the script execution service.

This module configures the FastAPI application and registers the
routes for health checks and code execution.  Around the execution
core it adds the usual service plumbing: access logging, security
headers, CORS, a request body size cap, optional API key
authentication, per‑IP rate limiting on ``/api/`` routes, and
fire‑and‑forget result notifications.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..config import Config
from ..executor import Orchestrator
from ..executor.base import utc_timestamp
from ..executor.orchestrator import default_backends
from ..models import ExecuteRequest, ExecuteResponse, HealthResponse, ServiceInfo
from ..notify import WebhookNotifier
from ..ratelimit import FixedWindowRateLimiter


logger = logging.getLogger("scriptexec")

if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("[scriptexec] %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)

logger.setLevel(logging.INFO)


SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
}

RATE_LIMITED_PREFIX = "/api/"

RATE_LIMIT_BODY = {
    "error": "Too many requests from this IP, please try again later.",
    "retryAfter": "15 minutes",
}


def _client_ip(request: Request) -> str:
    return getattr(request.client, "host", None) or "unknown"


def _error(status_code: int, message: str, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message}, headers=headers)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request body"
    first = errors[0]
    if first.get("type") == "missing" and tuple(first.get("loc", ())) == ("body",):
        return "Code is required"
    if first.get("type") != "value_error":
        return "Invalid request body"
    message = str(first.get("msg", ""))
    return message.split(", ", 1)[1] if message.startswith("Value error, ") else message


def create_app(config: Optional[Config] = None) -> FastAPI:
    config = config if config is not None else Config.from_env()

    logger.info(
        "Loaded config: port=%s, rate_limit=%s/%ss, python=%s, auth=%s, notifications=%s",
        config.port,
        config.rate_limit_max,
        config.rate_limit_window_seconds,
        config.python_executable,
        bool(config.api_key),
        config.notifier.enabled,
    )

    app = FastAPI(title="Script Execution Service", version=__version__)
    app.state.config = config
    app.state.started_at = time.monotonic()
    app.state.rate_limiter = FixedWindowRateLimiter(config.rate_limit_max, config.rate_limit_window_seconds)
    app.state.notifier = WebhookNotifier(config.notifier)

    # Middleware registered later wraps middleware registered earlier.
    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        """Limit requests per client IP on API routes."""
        if not request.url.path.startswith(RATE_LIMITED_PREFIX):
            return await call_next(request)
        decision = app.state.rate_limiter.hit(_client_ip(request))
        if not decision.allowed:
            logger.warning("Rate limit exceeded for %s on %s", _client_ip(request), request.url.path)
            return JSONResponse(status_code=429, content=RATE_LIMIT_BODY, headers=decision.headers())
        response = await call_next(request)
        response.headers.update(decision.headers())
        return response

    @app.middleware("http")
    async def authenticate(request: Request, call_next):
        """Enforce API key authentication when a key is configured."""
        if config.api_key and request.method != "OPTIONS":
            provided_key = request.headers.get("x-api-key")
            if provided_key != config.api_key:
                logger.warning(
                    "Invalid API key for %s %s from %s",
                    request.method,
                    request.url.path,
                    _client_ip(request),
                )
                return JSONResponse(status_code=401, content={"detail": "Invalid API key"})
        return await call_next(request)

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next):
        length = request.headers.get("content-length")
        if length is not None and length.isdigit() and int(length) > config.max_body_bytes:
            return _error(413, f"Request body too large (max {config.max_body_bytes} bytes)")
        return await call_next(request)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        """Log every request and attach security headers to the response."""
        path = request.url.path
        method = request.method
        client = _client_ip(request)
        logger.info("Incoming request: %s %s from %s", method, path, client)
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        logger.info("Response: %s %s -> %s", method, path, response.status_code)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = _validation_message(exc)
        logger.info("Rejected %s %s: %s", request.method, request.url.path, message)
        return _error(400, message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return _error(404, "Endpoint not found")
        return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error: %s", exc)
        return _error(500, "Internal server error")

    @app.get("/", response_model=ServiceInfo)
    async def index() -> ServiceInfo:
        """Describe the service and its endpoints."""
        return ServiceInfo(
            status="ok",
            message="Script Execution Service",
            version=__version__,
            endpoints={"execute": "POST /api/execute", "health": "GET /api/health"},
        )

    @app.get("/api/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Return a simple health check response."""
        return HealthResponse(
            status="healthy",
            timestamp=utc_timestamp(),
            uptime=round(time.monotonic() - app.state.started_at, 3),
        )

    @app.post("/api/execute", response_model=ExecuteResponse, response_model_exclude_none=True)
    def execute(req: ExecuteRequest, request: Request, background_tasks: BackgroundTasks) -> Any:
        """Run the submitted code and return the normalised result.

        Every completed execution is returned with status 200, including
        scripts that failed, timed out or named an unsupported language.
        """
        client = _client_ip(request)
        started = time.perf_counter()
        logger.info("Executing %s code from IP: %s", req.language, client)
        try:
            orchestrator = Orchestrator(default_backends(config.python_executable))
            result = orchestrator.execute(req.code, req.language, req.timeout)
        except Exception as exc:
            logger.exception("Execution error: %s", exc)
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": str(exc),
                    "executionTimeMs": int((time.perf_counter() - started) * 1000),
                    "timestamp": utc_timestamp(),
                },
            )

        payload = result.to_dict()
        if app.state.notifier.enabled:
            background_tasks.add_task(
                app.state.notifier.notify, payload, client, request.headers.get("user-agent")
            )
        return ExecuteResponse.from_result(result)

    return app


app = create_app()
