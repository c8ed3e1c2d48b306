import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from recetas.core.config import get_settings
from recetas.core.errors import RecetaError
from recetas.core.logging_setup import configure_logging
from recetas.db.session import dispose_engine, init_engine
from recetas.routers import recetas as recetas_router
from recetas.services.prescription_service import PrescriptionService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    init_engine(create_tables=settings.db_auto_create)
    try:
        yield
    finally:
        dispose_engine()


def _error_body(code: str, message: str, details=None) -> dict:
    body = {"ok": False, "error": code, "message": message}
    if details:
        body["details"] = details
    return body


async def receta_error_handler(request: Request, exc: RecetaError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(_error_body(exc.code, exc.message, exc.details), status_code=exc.status_code)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(_error_body("validation_failed", "Validation failed", details), status_code=400)


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    settings = get_settings()
    message = "Internal Server Error" if settings.app_env == "prod" else str(exc)
    return JSONResponse(_error_body("internal", message), status_code=500)


def create_app() -> FastAPI:
    """Factory compatible with uvicorn/gunicorn (``--factory``)."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Receta Veterinaria API", lifespan=lifespan)

    allowed_cors = set()
    if settings.app_env != "prod":
        allowed_cors.update({"http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:8000"})
    if allowed_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=sorted(allowed_cors),
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["*"],
        )

    app.add_exception_handler(RecetaError, receta_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.state.prescription_service = PrescriptionService()
    app.include_router(recetas_router.router)
    return app
