import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .request_context import REQUEST_ID_HEADER

logger = logging.getLogger(__name__)


class WorkflowError(Exception):
    """Base class for errors raised by the workflow core."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidTransition(WorkflowError):
    status_code = 409

    def __init__(self, current_status: Optional[str], target_status: Any) -> None:
        target = getattr(target_status, "value", target_status)
        super().__init__(f"Cannot transition from {current_status} to {target}.")
        self.current_status = current_status
        self.target_status = target


class ReminderLimitReached(WorkflowError):
    status_code = 409

    def __init__(self, demand_id: str, max_reminders: int) -> None:
        super().__init__(f"Maximum reminders ({max_reminders}) already sent for demand {demand_id}.")
        self.demand_id = demand_id
        self.max_reminders = max_reminders


class ValidationFailure(WorkflowError):
    status_code = 422


class RecordNotFound(WorkflowError):
    status_code = 404

    def __init__(self, collection: str, record_id: str) -> None:
        super().__init__(f"{collection} record {record_id} not found.")
        self.collection = collection
        self.record_id = record_id


class PersistenceFailure(WorkflowError):
    status_code = 503


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(WorkflowError)
    async def workflow_exception_handler(request: Request, exc: WorkflowError) -> JSONResponse:  # type: ignore[override]
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.message,
                "error": type(exc).__name__,
                "path": str(request.url),
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:  # type: ignore[override]
        return JSONResponse(
            status_code=422,
            content={
                "detail": "Validation failed.",
                "errors": jsonable_encoder(exc.errors()),
                "path": str(request.url),
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # type: ignore[override]
        # Runs outside RequestIdMiddleware; the id survives on the request state.
        request_id = getattr(request.state, "request_id", None)
        logger.error(
            "Unhandled error on %s %s [%s]", request.method, request.url.path, request_id, exc_info=exc
        )
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error.",
                "path": str(request.url),
            },
            headers={REQUEST_ID_HEADER: request_id} if request_id else None,
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:  # type: ignore[override]
        payload: Dict[str, Any] = {"detail": exc.detail or "HTTP error.", "path": str(request.url)}
        if exc.headers:
            payload["headers"] = exc.headers
        return JSONResponse(status_code=exc.status_code, content=payload)
