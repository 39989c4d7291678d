from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from order_engine.domain.errors import OrderServiceError, PersistenceError, ValidationError
from shared.core import get_logger

logger = get_logger(__name__)


def error_body(exc: OrderServiceError) -> dict:
    return {"detail": exc.message, "reason": exc.reason, **exc.extra}


async def order_service_error_handler(request: Request, exc: OrderServiceError) -> JSONResponse:
    """Map OrderServiceError subclasses to their HTTP responses."""
    return JSONResponse(status_code=exc.status_code, content=error_body(exc))


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg")}
        for err in exc.errors()
    ]
    error = ValidationError("Invalid request", {"errors": errors})
    return JSONResponse(status_code=error.status_code, content=error_body(error))


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=True)
    error = PersistenceError("Database operation failed")
    return JSONResponse(status_code=error.status_code, content=error_body(error))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OrderServiceError, order_service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
