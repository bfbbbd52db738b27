import json
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from messaging_api import errors
from messaging_api.auth import TokenTTLMiddleware, require_admin
from messaging_api.config import settings
from messaging_api.logging_utils import setup_logging, RequestLoggingMiddleware, log_contact_data
from messaging_api.metrics import record_contact_outcome, get_metrics, get_metrics_content_type
from messaging_api.publisher import Publisher, get_publisher
from messaging_api.repository import Repository
from messaging_api.schemas import (
    AckResponse,
    ContactMessageResponse,
    ErrorResponse,
    HealthResponse,
    RecipientResponse,
)
from messaging_api.services import ContactMessageService, RecipientService
from messaging_api.storage import init_db, check_db_health, get_repository


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: Initialize database and create tables
    - Shutdown: Close the queue connection pool
    """
    init_db()
    logger.info("Messaging API ready")
    yield
    if get_publisher.cache_info().currsize:
        await get_publisher().close()


app = FastAPI(
    title="Messaging API",
    description="Contact form submissions and notification recipient management",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(TokenTTLMiddleware)
app.add_middleware(RequestLoggingMiddleware)

if settings.allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )


# =============================================================================
# Error Mapping
# =============================================================================

ERROR_STATUS = {
    errors.ValidationError: status.HTTP_400_BAD_REQUEST,
    errors.InvalidIdentifier: status.HTTP_400_BAD_REQUEST,
    errors.NotFoundError: status.HTTP_404_NOT_FOUND,
    errors.PersistenceError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@app.exception_handler(errors.MessagingError)
async def messaging_error_handler(request: Request, exc: errors.MessagingError) -> JSONResponse:
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            status_code = code
            break
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input or identifier"},
    401: {"model": ErrorResponse, "description": "Missing or invalid token"},
    404: {"model": ErrorResponse, "description": "Not found"},
    500: {"model": ErrorResponse, "description": "Storage failure"},
}


async def read_json(request: Request) -> Any:
    """Decode the request body, treating malformed JSON as a validation error."""
    raw_body = await request.body()
    try:
        return json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.debug(f"Invalid JSON body: {e}")
        raise errors.ValidationError(f"Invalid JSON: {e}")


# =============================================================================
# Dependencies
# =============================================================================

def get_contact_service(
    repo: Repository = Depends(get_repository),
    publisher: Publisher = Depends(get_publisher),
) -> ContactMessageService:
    return ContactMessageService(repo, publisher)


def get_recipient_service(repo: Repository = Depends(get_repository)) -> RecipientService:
    return RecipientService(repo)


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """
    Liveness probe - always returns 200 once the app is running.
    """
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
async def health_ready(
    response: Response,
    publisher: Publisher = Depends(get_publisher),
) -> HealthResponse:
    """
    Readiness probe - returns 200 only if:
    1. DB is reachable and schema is applied
    2. The notification queue answers

    Otherwise returns 503 (Service Unavailable).
    """
    if not check_db_health():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="Database not reachable or schema not applied"
        )

    if not await publisher.ping():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="Queue not reachable"
        )

    return HealthResponse(status="ready")


# =============================================================================
# Public Routes
# =============================================================================

public = APIRouter(prefix=API_PREFIX, tags=["Contact"])


@public.post(
    "/contact",
    status_code=status.HTTP_201_CREATED,
    response_model=AckResponse,
    responses={400: ERROR_RESPONSES[400], 500: ERROR_RESPONSES[500]},
)
async def create_contact_message(
    request: Request,
    service: ContactMessageService = Depends(get_contact_service),
) -> AckResponse:
    """
    Submit a contact message.

    Submissions with the honeypot field filled are acknowledged the same
    way but are neither stored nor forwarded to the notification queue.
    """
    try:
        payload = await read_json(request)
        result = await service.submit(payload)
    except errors.ValidationError:
        record_contact_outcome("validation_error")
        log_contact_data(request, result="validation_error")
        raise
    except errors.PersistenceError:
        record_contact_outcome("error")
        log_contact_data(request, result="error")
        raise

    outcome = "spam" if result.spam else "created"
    record_contact_outcome(outcome)
    log_contact_data(request, message_id=result.message_id, spam=result.spam, result=outcome)
    return result.ack


# =============================================================================
# Admin Routes
# =============================================================================

admin = APIRouter(prefix=API_PREFIX, dependencies=[Depends(require_admin)])


@admin.get(
    "/messages",
    response_model=list[ContactMessageResponse],
    tags=["Messages"],
    responses={401: ERROR_RESPONSES[401], 500: ERROR_RESPONSES[500]},
)
async def list_contact_messages(
    service: ContactMessageService = Depends(get_contact_service),
) -> list[ContactMessageResponse]:
    """Return all contact messages, newest first."""
    messages = service.list_messages()
    logger.info(f"GET /messages: returned {len(messages)} messages")
    return [ContactMessageResponse.model_validate(m) for m in messages]


@admin.get(
    "/messages/{message_id}",
    response_model=ContactMessageResponse,
    tags=["Messages"],
    responses=ERROR_RESPONSES,
)
async def get_contact_message(
    message_id: str,
    service: ContactMessageService = Depends(get_contact_service),
) -> ContactMessageResponse:
    """Return a single contact message."""
    return ContactMessageResponse.model_validate(service.get_message(message_id))


@admin.get(
    "/recipients",
    response_model=list[RecipientResponse],
    tags=["Recipients"],
    responses={401: ERROR_RESPONSES[401], 500: ERROR_RESPONSES[500]},
)
async def list_recipients(
    service: RecipientService = Depends(get_recipient_service),
) -> list[RecipientResponse]:
    """Return all recipients ordered by name."""
    return [RecipientResponse.model_validate(r) for r in service.list_recipients()]


@admin.get(
    "/recipients/{recipient_id}",
    response_model=RecipientResponse,
    tags=["Recipients"],
    responses=ERROR_RESPONSES,
)
async def get_recipient(
    recipient_id: str,
    service: RecipientService = Depends(get_recipient_service),
) -> RecipientResponse:
    """Return a single recipient."""
    return RecipientResponse.model_validate(service.get(recipient_id))


@admin.post(
    "/recipients",
    status_code=status.HTTP_201_CREATED,
    response_model=RecipientResponse,
    tags=["Recipients"],
    responses={400: ERROR_RESPONSES[400], 401: ERROR_RESPONSES[401], 500: ERROR_RESPONSES[500]},
)
async def create_recipient(
    request: Request,
    response: Response,
    service: RecipientService = Depends(get_recipient_service),
) -> RecipientResponse:
    """
    Create a notification recipient.

    isActive defaults to true when omitted. The Location header points at
    the new resource.
    """
    payload = await read_json(request)
    recipient = service.create(payload)
    response.headers["Location"] = f"{API_PREFIX}/recipients/{recipient.id}"
    return RecipientResponse.model_validate(recipient)


@admin.put(
    "/recipients/{recipient_id}",
    response_model=RecipientResponse,
    tags=["Recipients"],
    responses=ERROR_RESPONSES,
)
async def update_recipient(
    recipient_id: str,
    request: Request,
    service: RecipientService = Depends(get_recipient_service),
) -> RecipientResponse:
    """
    Update a recipient.

    Only the fields present in the body are changed; the rest keep their
    stored values.
    """
    payload = await read_json(request)
    return RecipientResponse.model_validate(service.update(recipient_id, payload))


@admin.delete(
    "/recipients/{recipient_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Recipients"],
    responses=ERROR_RESPONSES,
)
async def delete_recipient(
    recipient_id: str,
    service: RecipientService = Depends(get_recipient_service),
) -> None:
    """Delete a recipient."""
    service.delete(recipient_id)


app.include_router(public)
app.include_router(admin)


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """
    Expose Prometheus-style metrics.

    Includes:
    - http_requests_total: Total HTTP requests by method, path, status
    - contact_submissions_total: Contact submission outcomes by result
    - queue_publish_failures_total: Events that could not be queued
    - request_latency_seconds: Request latency histogram
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
