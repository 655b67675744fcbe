import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from kiosk_pop.config import settings
from kiosk_pop.db.base import engine
from kiosk_pop.pop.parsing import BatchParseError
from kiosk_pop.routers import notifications, proof_of_play
from kiosk_pop.services.ingestion import IngestionConfigurationError

logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request"


def create_app() -> FastAPI:
    app = FastAPI(title="Kiosk Proof-of-Play API", default_response_class=ORJSONResponse)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=sorted(set(settings.BACKEND_CORS_ORIGINS)),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(_request: Request, exc: RequestValidationError) -> ORJSONResponse:
        return ORJSONResponse(status_code=422, content={"error": _validation_message(exc)})

    @app.exception_handler(BatchParseError)
    async def batch_parse_error_handler(_request: Request, exc: BatchParseError) -> ORJSONResponse:
        logger.info("Rejected unparseable Proof-of-Play payload", extra={"detail": str(exc)})
        return ORJSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(IngestionConfigurationError)
    async def ingestion_configuration_error_handler(
        _request: Request, exc: IngestionConfigurationError
    ) -> ORJSONResponse:
        logger.error("Ingestion is misconfigured", extra={"detail": str(exc)})
        return ORJSONResponse(status_code=500, content={"error": str(exc)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Unhandled server exception", exc_info=exc)
        return ORJSONResponse(status_code=500, content={"error": "Internal server error."})

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/health/db")
    def health_db() -> dict[str, str]:
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return {"db": "ok"}
        except Exception as exc:  # pragma: no cover - simple runtime check
            return {"db": f"error: {exc}"}

    app.include_router(proof_of_play.router)
    app.include_router(notifications.router)

    return app


app = create_app()
