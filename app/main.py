"""
Script writer sync backend: accounts, Google sign-in, per-user script storage.

Load .env in development only (production uses env vars directly). Add CORS,
error handlers, and the database / OAuth handles on app.state.
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# Load .env only in development; must happen before config is imported
if os.getenv("ENV", "development").lower() == "development":
    load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from config import (
    CORS_ORIGINS,
    DATABASE_URL,
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GOOGLE_REDIRECT_URI,
    HOST,
    LOG_LEVEL,
    PORT,
    SKIP_DB_INIT,
)
from database import Database
from errors import AppError, StorageFault
from auth import router as auth_router
from scripts import router as scripts_router
from services.google_oauth import GoogleOAuthClient

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


def create_app(
    database: Database | None = None,
    oauth_client: GoogleOAuthClient | None = None,
    *,
    init_db: bool = not SKIP_DB_INIT,
) -> FastAPI:
    """Build the app around an explicit database handle and OAuth client."""
    database = database or Database(DATABASE_URL)
    oauth_client = oauth_client or GoogleOAuthClient(
        GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_REDIRECT_URI
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Create DB tables if not skipping (production uses migrations)
        if init_db:
            database.create_all()
        if oauth_client.enabled:
            logger.info("Google OAuth enabled")
        else:
            logger.info("Google OAuth disabled - set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET to enable")
        yield
        database.close()

    app = FastAPI(
        title="Script Writer Backend",
        description="Accounts, Google sign-in and cloud sync for the Script Writer desktop editor.",
        lifespan=lifespan,
    )
    app.state.database = database
    app.state.oauth_client = oauth_client

    # Credentials are only allowed with an explicit origin list, never with "*"
    allow_any = "*" in CORS_ORIGINS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_any else CORS_ORIGINS,
        allow_credentials=not allow_any,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if isinstance(exc, StorageFault):
            return JSONResponse(status_code=exc.status_code, content={"detail": "Internal server error"})
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.msg})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Malformed bodies are a 400 with the first problem, not FastAPI's 422."""
        errors = exc.errors()
        detail = "Invalid request"
        if errors:
            first = errors[0]
            loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
            detail = f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))
        return JSONResponse(status_code=400, content={"detail": detail})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch unhandled exceptions; log and return generic 500. Never leak stack traces."""
        logging.exception("Unhandled exception: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    @app.get("/api/health")
    def health():
        return {"status": "ok", "oauthEnabled": oauth_client.enabled}

    app.include_router(auth_router)
    app.include_router(scripts_router)
    return app


app = create_app()


def serve() -> None:
    """Console entry point: run the API with uvicorn on HOST:PORT."""
    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    serve()
