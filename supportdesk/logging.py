"""
SupportDesk Logging

JSON event logs through structlog. Every event carries the service name and
environment; events emitted while handling a request also carry its
request id, method and route.
"""

import logging
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from .config import settings

REQUEST_ID_HEADER = "X-Request-ID"

logger = structlog.get_logger("supportdesk.http")


def add_service_context(_, __, event_dict: dict) -> dict:
    event_dict.setdefault("service", settings.app_name)
    event_dict.setdefault("environment", settings.environment)
    return event_dict


def setup_logging() -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", level=level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_service_context,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def request_log_context(request: Request, request_id: str) -> dict:
    """Fields bound for the lifetime of one request. Never includes bodies."""
    return {
        "request_id": request_id,
        "method": request.method,
        "route": request.url.path,
    }


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Propagates or mints X-Request-ID and logs one line per request."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        context = request_log_context(request, request_id)
        structlog.contextvars.bind_contextvars(**context)
        started = time.perf_counter()
        try:
            response: Response = await call_next(request)
            logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
        finally:
            structlog.contextvars.unbind_contextvars(*context)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
