import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException

from storage_gateway.api.v1.deps import require_api_key
from storage_gateway.api.v1.routers.files import router as files_router
from storage_gateway.api.v1.schemas.envelope import (
    ResponseCode,
    envelope_response,
    failure,
    from_error,
)
from storage_gateway.common.config import get_settings
from storage_gateway.common.logging import setup_logging
from storage_gateway.infra.observability.metrics import metrics_app
from storage_gateway.infra.observability.middleware import MetricsMiddleware
from storage_gateway.infra.storage.errors import StorageError
from storage_gateway.services.factory import from_settings
from storage_gateway.services.storage_service import StorageService


def _response_code_for_status(status_code: int) -> ResponseCode:
    if status_code == 403:
        return ResponseCode.FORBIDDEN
    if status_code < 500:
        return ResponseCode.CLIENT_ERROR
    return ResponseCode.SERVER_ERROR


def _normalize_detail(detail) -> str:
    if isinstance(detail, dict):
        return str(detail.get("message") or detail)
    return str(detail)


def create_app(storage: StorageService | None = None) -> FastAPI:
    """Build the application.

    The storage service is created here, once per process, so configuration
    errors abort startup. Tests pass a ready-made service instead.
    """
    settings = get_settings()
    setup_logging()
    service = storage if storage is not None else from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        startup_logger = logging.getLogger("storage.startup")
        startup_logger.info(
            "Cloud client initialised for provider %s [event=storage_ready]",
            service.provider,
        )
        yield
        service.close()
        startup_logger.info("Cloud client closed [event=storage_closed]")

    app = FastAPI(
        title="Storage Gateway",
        version="v1.0",
        description="Provider-agnostic blob storage service",
        lifespan=lifespan,
    )
    app.state.storage = service

    # Optional CORS
    if settings.CORS_ENABLED:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS or ["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(
        files_router,
        tags=["storage"],
        dependencies=[Depends(require_api_key)],
    )

    # Metrics
    if settings.ENABLE_METRICS:
        app.add_middleware(MetricsMiddleware)
        app.mount("/metrics", metrics_app)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        logger = logging.getLogger("http")
        detail = _normalize_detail(exc.detail)
        logger.log(
            logging.WARNING if exc.status_code < 500 else logging.ERROR,
            "http_exception status=%s detail=%s method=%s path=%s request_id=%s",
            exc.status_code,
            detail,
            request.method,
            request.url.path,
            request.headers.get("X-Request-Id"),
            extra={
                "extra": {
                    "status": exc.status_code,
                    "detail": detail,
                    "method": request.method,
                    "route": request.url.path,
                    "request_id": request.headers.get("X-Request-Id"),
                }
            },
        )
        return envelope_response(
            failure(_response_code_for_status(exc.status_code), detail),
            status_code=exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        return envelope_response(
            failure(
                ResponseCode.CLIENT_ERROR,
                "Request validation failed",
                result={"errors": jsonable_encoder(exc.errors())},
            ),
            status_code=422,
        )

    @app.exception_handler(StorageError)
    async def storage_exception_handler(request: Request, exc: StorageError):
        return envelope_response(from_error(exc))

    @app.get("/health")
    async def health():
        return {"status": "ok", "provider": service.provider}

    return app


if __name__ == "__main__":
    uvicorn.run("storage_gateway.main:create_app", factory=True, host="0.0.0.0", port=3030)
