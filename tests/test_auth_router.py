"""Tests for the auth router, the bearer dependency and /api/health."""

import json
import re
from datetime import datetime, timedelta, UTC
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import config
from auth import render_callback_page
from database import Database
import main
from main import create_app
from security import create_jwt, create_oauth_state, decode_jwt
from services.google_oauth import GoogleOAuthClient

from fastapi.testclient import TestClient


def test_health_reports_oauth(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "oauthEnabled": True}


def test_register_then_login(client):
    """Register returns a token; the same credentials log in."""
    r = client.post("/api/register", json={"email": "a@x.com", "password": "longpass"})
    assert r.status_code == 200
    data = r.json()
    assert data["user"]["email"] == "a@x.com"
    assert decode_jwt(data["token"])["userId"] == data["user"]["id"]

    r = client.post("/api/login", json={"email": "a@x.com", "password": "longpass"})
    assert r.status_code == 200
    assert r.json()["user"]["id"] == data["user"]["id"]


def test_register_short_password_is_400(client):
    r = client.post("/api/register", json={"email": "a@x.com", "password": "short"})
    assert r.status_code == 400
    assert "6 characters" in r.json()["detail"]


def test_register_missing_fields_is_400(client):
    r = client.post("/api/register", json={"email": "a@x.com"})
    assert r.status_code == 400


def test_register_duplicate_is_409(client):
    client.post("/api/register", json={"email": "a@x.com", "password": "longpass"})
    r = client.post("/api/register", json={"email": "a@x.com", "password": "other-pass"})
    assert r.status_code == 409
    assert r.json() == {"detail": "Email already registered"}


def test_login_failures_look_the_same(client, setup_user):
    """Wrong password and unknown email give identical 401 responses."""
    wrong = client.post("/api/login", json={"email": "alice@example.com", "password": "nope-nope"})
    unknown = client.post("/api/login", json={"email": "ghost@example.com", "password": "nope-nope"})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json()


def test_scripts_require_token(client):
    r = client.get("/api/scripts")
    assert r.status_code == 401
    assert r.json() == {"detail": "Access token required"}


def test_scripts_reject_garbage_token(client):
    r = client.get("/api/scripts", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json() == {"detail": "Invalid or expired token"}


def test_scripts_reject_expired_token(client, setup_user):
    """Correct signature but expiry in the past is refused."""
    token = create_jwt(setup_user.id, setup_user.email, now=datetime.now(UTC) - timedelta(days=40))
    r = client.get("/api/scripts", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


def test_oauth_state_is_not_accepted_as_session(client):
    r = client.get("/api/scripts", headers={"Authorization": f"Bearer {create_oauth_state('nonce')}"})
    assert r.status_code == 401


def test_google_auth_url(client):
    r = client.get("/api/auth/google")
    assert r.status_code == 200
    url = urlparse(r.json()["authUrl"])
    params = parse_qs(url.query)
    assert url.netloc == "accounts.google.com"
    assert params["client_id"] == ["client-id"]
    assert params["scope"] == ["openid email profile"]
    assert params["state"][0]
    assert r.cookies.get("oauth_state")
    set_cookie = r.headers["set-cookie"].lower()
    assert "httponly" in set_cookie and "samesite=lax" in set_cookie


def test_google_auth_url_unconfigured_is_503(database):
    app = create_app(database=database, oauth_client=GoogleOAuthClient("", "", ""), init_db=True)
    with TestClient(app) as c:
        assert c.get("/api/auth/google").status_code == 503
        assert c.get("/api/health").json()["oauthEnabled"] is False
        r = c.get("/api/auth/google/callback?code=x", follow_redirects=False)
        assert r.status_code == 302
        assert r.headers["location"] == "/?error=google_not_configured"


def _payload_from_page(html: str) -> dict:
    match = re.search(r'<script id="auth-payload" type="application/json">(.*?)</script>', html, re.S)
    assert match
    return json.loads(match.group(1))


def test_google_callback_delivers_token(client, oauth_client):
    """Callback exchanges the code and returns the postMessage page."""
    state = parse_qs(urlparse(client.get("/api/auth/google").json()["authUrl"]).query)["state"][0]
    r = client.get("/api/auth/google/callback", params={"code": "abc", "state": state})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/html")
    payload = _payload_from_page(r.text)
    message = payload["message"]
    assert message["type"] == "GOOGLE_AUTH_SUCCESS"
    assert message["user"]["email"] == "writer@example.com"
    assert decode_jwt(message["token"])["email"] == "writer@example.com"
    assert oauth_client.codes == ["abc"]
    assert payload["targetOrigin"] == config.BASE_URL
    assert "oauth_state=" in r.headers["set-cookie"]
    assert "Max-Age=0" in r.headers["set-cookie"]


def test_google_callback_requires_code_and_state(client):
    r = client.get("/api/auth/google/callback", follow_redirects=False)
    assert r.headers["location"] == "/?error=no_code"
    r = client.get("/api/auth/google/callback?code=abc&state=forged", follow_redirects=False)
    assert r.headers["location"] == "/?error=invalid_state"


def test_google_callback_provider_error(client):
    r = client.get("/api/auth/google/callback?error=access_denied", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["location"] == "/?error=oauth_denied"


def test_callback_page_escapes_markup():
    """User-controlled profile text cannot close the data block or run script."""
    result = {
        "token": "t",
        "user": {"id": 1, "email": "a@x.com", "name": "</script><script>alert(1)</script>", "picture": "'"},
    }
    html = render_callback_page(result, target_origin="*")
    assert "</script><script>alert(1)" not in html
    payload = _payload_from_page(html)
    assert payload["message"]["user"]["name"] == "</script><script>alert(1)</script>"
    assert payload["targetOrigin"] == "*"


def test_database_is_closed_on_shutdown():
    database = Database("sqlite://")
    app = create_app(database=database, oauth_client=GoogleOAuthClient("", "", ""), init_db=True)
    closed = []
    original = database.close
    database.close = lambda: (closed.append(True), original())
    with TestClient(app) as c:
        c.get("/api/health")
    assert closed == [True]


def _state_from_auth_url(client) -> str:
    return parse_qs(urlparse(client.get("/api/auth/google").json()["authUrl"]).query)["state"][0]


def test_google_callback_rejects_state_without_cookie(client, oauth_client):
    """A valid signed state is refused when the browser has no matching cookie."""
    state = _state_from_auth_url(client)
    client.cookies.clear()
    r = client.get(
        "/api/auth/google/callback", params={"code": "abc", "state": state}, follow_redirects=False
    )
    assert r.headers["location"] == "/?error=invalid_state"
    assert oauth_client.codes == []


def test_google_callback_rejects_state_from_another_flow(client, oauth_client):
    """A state minted for one login cannot complete a login started elsewhere."""
    foreign_state = _state_from_auth_url(client)
    # a second start replaces this browser's nonce cookie
    _state_from_auth_url(client)
    r = client.get(
        "/api/auth/google/callback",
        params={"code": "abc", "state": foreign_state},
        follow_redirects=False,
    )
    assert r.headers["location"] == "/?error=invalid_state"
    assert oauth_client.codes == []


def test_message_origin_defaults_to_base_url():
    assert config.OAUTH_MESSAGE_ORIGIN == config.BASE_URL
    payload = _payload_from_page(render_callback_page({"token": "t", "user": {"id": 1}}))
    assert payload["targetOrigin"] == config.BASE_URL


@patch("main.uvicorn.run")
def test_serve_runs_uvicorn_on_configured_address(mock_run):
    main.serve()
    mock_run.assert_called_once()
    args, kwargs = mock_run.call_args
    assert args[0] is main.app
    assert (kwargs["host"], kwargs["port"]) == (config.HOST, config.PORT)
