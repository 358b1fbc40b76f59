"""FastAPI application."""
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from .config import Settings, get_settings
from .database import init_engine
from .domain_errors import DomainError
from .logging_config import configure_logging
from .problem_details import domain_error_handler, validation_error_handler
from .routers import admin, auth, contact, orders

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

# Inbox metadata sent alongside the legacy array shape of /order/my-orders.
EXPOSED_HEADERS = ["X-Unread-Order-Ids", "X-Unread-Counts", "X-Response-Shape"]


def check_production_settings(settings: Settings) -> None:
    """Fail closed on insecure production configuration."""
    if not settings.is_production:
        return
    if not settings.cors_origins:
        raise RuntimeError("ALLOWED_ORIGINS must be set in production (explicit frontend origin required).")
    if any(origin == "*" for origin in settings.cors_origins):
        raise RuntimeError("ALLOWED_ORIGINS must be explicit in production (no wildcard when using credentials).")
    if any(
        origin.startswith("http://localhost") or origin.startswith("http://127.0.0.1") for origin in settings.cors_origins
    ):
        raise RuntimeError("ALLOWED_ORIGINS contains localhost in production; set it to your real frontend origin.")
    if not settings.RECAPTCHA_SECRET:
        raise RuntimeError("RECAPTCHA_SECRET must be set in production.")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)
    check_production_settings(settings)
    init_engine(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        version=VERSION,
        description="Backend API for order intake and the admin portal",
    )
    app.dependency_overrides[get_settings] = lambda: settings

    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    cors_headers = ["Content-Type", "X-Response-Shape"]
    if not settings.is_production:
        cors_headers = ["*"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=cors_headers,
        expose_headers=EXPOSED_HEADERS,
    )

    app.include_router(auth.router, prefix="/api")
    app.include_router(contact.router, prefix="/api")
    app.include_router(orders.router, prefix="/api")
    app.include_router(admin.router, prefix="/api")

    @app.get("/api/system/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok", "version": VERSION}

    logger.info("%s started (env=%s)", settings.APP_NAME, settings.ENV)
    return app


def load_settings() -> Settings:
    """Build settings or stop the process when required variables are missing."""
    try:
        return get_settings()
    except ValidationError as exc:
        missing = ", ".join(".".join(str(part) for part in err["loc"]) for err in exc.errors())
        logging.basicConfig(level=logging.ERROR)
        logger.critical("Invalid or missing configuration: %s", missing)
        raise SystemExit(1)


app = create_app(load_settings())
