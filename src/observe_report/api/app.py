"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from observe_report.api.auth import router as auth_router
from observe_report.api.geocoding import router as geocoding_router
from observe_report.api.observations import router as observations_router
from observe_report.api.uploads import router as uploads_router
from observe_report.app_logging import configure_logging
from observe_report.containers import AppContainer
from observe_report.errors import (
    AccountError,
    AuthError,
    FieldCipherError,
    GeocodingError,
    ImageError,
    ImageTooLarge,
    NotFound,
    Unauthorized,
    ValidationError,
)


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(auth_router)
    app.include_router(observations_router)
    app.include_router(geocoding_router)
    app.include_router(uploads_router)

    @app.exception_handler(Unauthorized)
    async def unauthorized_handler(_: Request, exc: Unauthorized) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "unauthenticated", "reason": exc.reason.value},
        )

    @app.exception_handler(AuthError)
    async def auth_error_handler(_: Request, exc: AuthError) -> JSONResponse:
        logger.info("Rejected login attempt: %s", exc.reason.value)
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": str(exc), "reason": exc.reason.value},
        )

    @app.exception_handler(AccountError)
    async def account_error_handler(_: Request, exc: AccountError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": str(exc), "reason": exc.reason.value},
        )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(
        _: Request, exc: ValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)}
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        _: Request, exc: RequestValidationError
    ) -> JSONResponse:
        messages = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()))
            messages.append(f"{location}: {error.get('msg', 'invalid value')}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "; ".join(messages) or "invalid request"},
        )

    @app.exception_handler(NotFound)
    async def not_found_handler(_: Request, exc: NotFound) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND, content={"error": str(exc)}
        )

    @app.exception_handler(GeocodingError)
    async def geocoding_error_handler(_: Request, exc: GeocodingError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY, content={"error": str(exc)}
        )

    @app.exception_handler(ImageError)
    async def image_error_handler(_: Request, exc: ImageError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)}
        )

    @app.exception_handler(ImageTooLarge)
    async def image_too_large_handler(_: Request, exc: ImageTooLarge) -> JSONResponse:
        return JSONResponse(status_code=413, content={"error": str(exc)})

    @app.exception_handler(FieldCipherError)
    async def field_cipher_handler(_: Request, exc: FieldCipherError) -> JSONResponse:
        logger.error("Stored data could not be decrypted: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "stored data unavailable"},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
