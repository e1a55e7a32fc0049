import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from coupon_backend.api.routes import api_router
from coupon_backend.core.config import settings
from coupon_backend.core.logging_config import configure_logging
from coupon_backend.core.sentry import init_sentry
from coupon_backend.core.startup_checks import validate_production_settings
from coupon_backend.db.session import engine
from coupon_backend.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from coupon_backend.schemas.error import ErrorResponse
from coupon_backend.services.claims import ClaimError

logger = logging.getLogger(__name__)

_HTTP_ERROR_CODES = {
    400: "bad_request",
    404: "not_found",
    405: "method_not_allowed",
    429: "too_many_requests",
    500: "internal_error",
    503: "service_unavailable",
}


async def verify_database() -> None:
    """Refuse to serve traffic when the coupon store cannot be reached."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        logger.exception("database_connection_failed", extra={"backend": engine.url.get_backend_name()})
        raise
    logger.info("database_connected", extra={"backend": engine.url.get_backend_name()})


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    validate_production_settings()
    if settings.verify_db_on_startup:
        await verify_database()
    yield
    await engine.dispose()


def _error_response(status_code: int, message: object, code: str | None, headers: dict | None = None) -> JSONResponse:
    payload = ErrorResponse(message=message, code=code)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload.model_dump()), headers=headers)


def get_application() -> FastAPI:
    configure_logging(settings.log_json, settings.log_level)
    init_sentry()
    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(api_router)

    @app.exception_handler(ClaimError)
    async def claim_exception_handler(request: Request, exc: ClaimError):
        return _error_response(exc.status_code, exc.message, exc.code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error_response(
            exc.status_code, exc.detail, _HTTP_ERROR_CODES.get(exc.status_code), getattr(exc, "headers", None)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _error_response(422, jsonable_encoder(exc.errors()), "validation_error")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        # Starlette re-raises after this so the server still logs the traceback.
        return _error_response(500, "Internal Server Error", "internal_error")

    return app


app = get_application()


def run() -> None:
    import uvicorn

    uvicorn.run("coupon_backend.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
