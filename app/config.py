"""
Application configuration from environment variables.

Load with python-dotenv in main so env vars are available before imports.
Validates critical secrets at module load; missing values raise RuntimeError.
"""
import os

from envvars import bool_env, int_env

# --- Required (raise if missing) ---
JWT_SECRET = os.getenv("JWT_SECRET")

for name, val in [
    ("JWT_SECRET", JWT_SECRET),
]:
    if not val or not str(val).strip():
        raise RuntimeError(f"Required env var {name} is missing or empty")

JWT_ALGORITHM = "HS256"

# Session token lifetime in days
JWT_EXPIRE_DAYS = int_env("JWT_EXPIRE_DAYS", 30)

# OAuth CSRF state token lifetime, seconds
OAUTH_STATE_MAX_AGE = 600

# OAuth CSRF: cookie holding the nonce the signed state is bound to
OAUTH_STATE_COOKIE_NAME = os.getenv("OAUTH_STATE_COOKIE_NAME", "oauth_state")

# Secure cookie flag (set True in production over HTTPS)
SECURE_COOKIES = bool_env("SECURE_COOKIES")

# --- Optional with defaults ---
BASE_URL = os.getenv("BASE_URL", "http://localhost:3000").rstrip("/")

# Google OAuth is disabled unless both id and secret are set
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "").strip()
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET", "").strip()
GOOGLE_REDIRECT_URI = os.getenv(
    "GOOGLE_REDIRECT_URI", f"{BASE_URL}/api/auth/google/callback"
)
GOOGLE_REQUEST_TIMEOUT = (5, 30)  # connect 5s, read 30s

# Target origin for the OAuth popup postMessage; the token only goes to our own pages
OAUTH_MESSAGE_ORIGIN = os.getenv("OAUTH_MESSAGE_ORIGIN", BASE_URL)

# CORS origins, comma separated; "*" allows any (no credentials then)
FRONTEND_URL = os.getenv("FRONTEND_URL", BASE_URL)
CORS_ORIGINS = [o.strip().rstrip("/") for o in FRONTEND_URL.split(",") if o.strip()]

# Database URL (SQLite default; use Postgres URL in production)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./database.sqlite")

# Skip create_all at startup (set in production when using migrations)
SKIP_DB_INIT = bool_env("SKIP_DB_INIT")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# uvicorn bind address for the script-writer-server command
HOST = os.getenv("HOST", "127.0.0.1")
PORT = int_env("PORT", 3000)

# Environment: development | production (affects .env loading)
ENV = os.getenv("ENV", "development").lower()
