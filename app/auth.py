"""
Auth router: password register/login, Google OAuth, bearer-token dependency.

- /api/register and /api/login return {token, user}.
- /api/auth/google returns the Google consent URL with a signed CSRF state
  bound to a nonce cookie on the requesting browser.
- /api/auth/google/callback exchanges the code and serves a small page that
  hands {token, user} to the opener window via postMessage. The payload is
  embedded as a JSON data block, never spliced into script source.
- get_current_identity reads "Authorization: Bearer <jwt>" for the scripts router.
"""
import json
import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from config import (
    OAUTH_MESSAGE_ORIGIN,
    OAUTH_STATE_COOKIE_NAME,
    OAUTH_STATE_MAX_AGE,
    SECURE_COOKIES,
)
from database import get_db
from errors import AppError, Unauthorized
from schemas import CredentialsBody
from security import (
    SessionIdentity,
    create_oauth_state,
    decode_jwt,
    identity_from_claims,
    verify_oauth_state,
)
from services.google_oauth import GoogleOAuthClient
from services.identity_service import IdentityService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# HttpOnly, SameSite=Lax; Secure is switched on for HTTPS deployments
def _cookie_kwargs(secure: bool = False) -> dict:
    return {
        "httponly": True,
        "samesite": "lax",
        "secure": secure,
        "path": "/",
    }

CALLBACK_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Signing in</title></head>
<body>
<script id="auth-payload" type="application/json">{payload}</script>
<script>
  (function () {{
    var data = JSON.parse(document.getElementById("auth-payload").textContent);
    if (window.opener) {{
      window.opener.postMessage(data.message, data.targetOrigin);
      window.close();
    }} else {{
      window.location.href = "/?token=" + encodeURIComponent(data.message.token) +
        "&email=" + encodeURIComponent(data.message.user.email);
    }}
  }})();
</script>
</body>
</html>
"""


def _json_for_html(value) -> str:
    """JSON safe to place inside a <script> element."""
    return (
        json.dumps(value)
        .replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
    )


def render_callback_page(result: dict, target_origin: str = OAUTH_MESSAGE_ORIGIN) -> str:
    message = {"type": "GOOGLE_AUTH_SUCCESS", "token": result["token"], "user": result["user"]}
    payload = {"message": message, "targetOrigin": target_origin}
    return CALLBACK_PAGE.format(payload=_json_for_html(payload))


def get_oauth_client(request: Request) -> GoogleOAuthClient:
    return request.app.state.oauth_client


def get_current_identity(request: Request) -> SessionIdentity:
    """
    FastAPI dependency: validate the bearer token and return who it belongs to.
    Stateless: no database lookup, validity is signature plus expiry.
    """
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise Unauthorized("Access token required")
    try:
        claims = decode_jwt(token)
    except Exception:
        raise Unauthorized("Invalid or expired token")
    identity = identity_from_claims(claims)
    if identity is None:
        raise Unauthorized("Invalid or expired token")
    return identity


@router.post("/register")
def register(body: CredentialsBody, db: Session = Depends(get_db)):
    """Create a password account and return a session token."""
    return IdentityService(db).register(body.email, body.password)


@router.post("/login")
def login(body: CredentialsBody, db: Session = Depends(get_db)):
    return IdentityService(db).login(body.email, body.password)


@router.get("/auth/google")
def google_auth_url(response: Response, oauth_client: GoogleOAuthClient = Depends(get_oauth_client)):
    """
    Return the Google consent URL; 503 when OAuth is not configured. A random
    nonce goes into a short-lived cookie and into the signed state, and the
    callback only accepts a state whose nonce matches this browser's cookie.
    """
    if not oauth_client.enabled:
        raise HTTPException(status_code=503, detail="Google OAuth not configured")
    nonce = secrets.token_urlsafe(32)
    response.set_cookie(
        OAUTH_STATE_COOKIE_NAME,
        nonce,
        max_age=OAUTH_STATE_MAX_AGE,
        **_cookie_kwargs(secure=SECURE_COOKIES),
    )
    return {"authUrl": oauth_client.build_auth_url(create_oauth_state(nonce))}


@router.get("/auth/google/callback")
def google_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    db: Session = Depends(get_db),
    oauth_client: GoogleOAuthClient = Depends(get_oauth_client),
):
    """
    Handle redirect from Google. Errors redirect to /?error=<reason> so the
    editor can show them; success returns the postMessage page. The state
    cookie is cleared on every outcome past the state check.
    """
    if not oauth_client.enabled:
        return RedirectResponse(url="/?error=google_not_configured", status_code=302)
    if error:
        return RedirectResponse(url="/?error=oauth_denied", status_code=302)
    if not code:
        return RedirectResponse(url="/?error=no_code", status_code=302)
    if not verify_oauth_state(state, request.cookies.get(OAUTH_STATE_COOKIE_NAME)):
        return RedirectResponse(url="/?error=invalid_state", status_code=302)

    try:
        result = IdentityService(db, oauth_client).resolve_oauth_identity(code)
    except AppError as e:
        logger.warning("Google OAuth callback failed: %s", e.msg)
        response = RedirectResponse(url="/?error=oauth_failed", status_code=302)
    else:
        response = HTMLResponse(render_callback_page(result))
    response.delete_cookie(OAUTH_STATE_COOKIE_NAME, path="/")
    return response
