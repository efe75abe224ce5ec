from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import structlog

logger = structlog.get_logger(__name__)


class StorefrontError(Exception):
    """Base error; `message` is always safe to show to a client."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)


class InvalidInput(StorefrontError):
    status_code = 400
    message = "Invalid request"


class Unauthenticated(StorefrontError):
    status_code = 401
    message = "Authentication required"


class NotFound(StorefrontError):
    status_code = 404
    message = "Not found"


class ProductNotFound(NotFound):
    message = "Product not found"


class OrderNotFound(NotFound):
    message = "Order not found"


class AlreadyDelivered(OrderNotFound):
    """The order left the active collection because it was already delivered."""

    message = "Order already delivered"

    def __init__(self, order_id: int | None = None):
        super().__init__()
        self.order_id = order_id


class PersistenceError(StorefrontError):
    message = "Storage operation failed"


class DuplicateRecord(PersistenceError):
    message = "Record already exists"


class ConsistencyError(StorefrontError):
    """A compensating action failed; the store needs manual reconciliation."""

    message = "Order state is inconsistent and requires manual reconciliation"

    def __init__(self, message: str | None = None, record_id: str | None = None):
        super().__init__(message)
        self.record_id = record_id


def _storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=type(exc).__name__, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    detail = "Invalid request"
    if errors:
        loc = ".".join(str(p) for p in errors[0].get("loc", ()) if p != "body")
        detail = f"{loc}: {errors[0].get('msg')}" if loc else str(errors[0].get("msg"))
    return JSONResponse(status_code=InvalidInput.status_code, content={"detail": detail})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StorefrontError, _storefront_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
