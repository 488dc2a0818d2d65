# app/api/__init__.py
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.domain.errors import CheckoutError
from app.utils.logging import get_logger

logger = get_logger(__name__)


async def checkout_error_handler(request: Request, exc: CheckoutError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": f"{field}: {message}" if field else message},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CheckoutError, checkout_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
