import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from pythonjsonlogger.json import JsonFormatter

from messaging_api.metrics import normalize_path, record_http_request


# Context variable to store request_id for the current request
request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    """Get the current request ID from context."""
    return request_id_ctx.get()


class CustomJsonFormatter(JsonFormatter):
    """Custom JSON formatter to ensure ISO-8601 timestamps and request_id."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        if not log_record.get('ts'):
            log_record['ts'] = datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'
        log_record['level'] = record.levelname

        if 'request_id' not in log_record:
            req_id = request_id_ctx.get()
            if req_id:
                log_record['request_id'] = req_id


def setup_logging(log_level: str = "INFO"):
    """
    Setup structured JSON logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logger = logging.getLogger()
    logger.setLevel(log_level.upper())

    # Remove existing handlers
    logger.handlers = []

    json_handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        '%(ts)s %(level)s %(name)s %(message)s'
    )
    json_handler.setFormatter(formatter)

    logger.addHandler(json_handler)

    # Configure Uvicorn loggers to use JSON format
    uvicorn_loggers = [
        "uvicorn",
        "uvicorn.error",
        "uvicorn.access",
    ]

    for logger_name in uvicorn_loggers:
        uvicorn_logger = logging.getLogger(logger_name)
        uvicorn_logger.handlers = []
        uvicorn_logger.addHandler(json_handler)
        uvicorn_logger.propagate = False

    # Disable uvicorn.access logger since we have our own middleware
    logging.getLogger("uvicorn.access").disabled = True

    return logger


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log all HTTP requests in structured JSON format.

    Log keys:
    - ts, level, request_id
    - method, path, status, latency_ms
    - route: path with resource ids collapsed (/api/v1/recipients/{id})

    For admin requests with an accepted token:
    - token_ttl: seconds left before the token expires

    For contact submissions:
    - message_id: id of the stored message (when one was stored)
    - spam: whether the honeypot was filled
    - result: processing result (created, spam, validation_error, error)
    """

    logger = logging.getLogger("messaging_api.requests")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_ctx.set(request_id)
        start_time = time.time()

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            latency_seconds = time.time() - start_time

            route = normalize_path(request.url.path)
            if route != "/metrics":
                record_http_request(request.method, route, response.status_code, latency_seconds)

            log_data = {
                "method": request.method,
                "path": request.url.path,
                "route": route,
                "status": response.status_code,
                "latency_ms": round(latency_seconds * 1000, 2),
            }
            ttl = getattr(request.state, "token_ttl", None)
            if ttl is not None:
                log_data["token_ttl"] = ttl
            log_data.update(getattr(request.state, "contact_log_data", {}))

            self.logger.log(_status_level(response.status_code), "Request completed", extra=log_data)
            return response
        finally:
            request_id_ctx.reset(token)


def _status_level(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


def log_contact_data(request: Request, message_id: Optional[int] = None, spam: bool = False, result: str = None):
    """
    Attach contact-submission logging data to the request state.
    This data will be included in the request log by the middleware.

    Args:
        request: FastAPI request object
        message_id: Id of the stored message, if any
        spam: Whether the submission was flagged as spam
        result: Processing result (created, spam, validation_error, error)
    """
    contact_data = {}

    if message_id is not None:
        contact_data["message_id"] = message_id

    if result is not None:
        contact_data["result"] = result

    contact_data["spam"] = spam

    request.state.contact_log_data = contact_data
