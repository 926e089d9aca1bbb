"""
Password hashing and JWT creation/verification.

Session tokens are HS256 JWTs sent as "Authorization: Bearer <token>".
They are stateless: validity is signature plus expiry, nothing is stored
server side. The same secret also signs the short-lived OAuth state value.
"""
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, UTC

import bcrypt
from jose import JWTError, jwt

from config import JWT_ALGORITHM, JWT_EXPIRE_DAYS, JWT_SECRET, OAUTH_STATE_MAX_AGE

BCRYPT_ROUNDS = 10

OAUTH_STATE_PURPOSE = "oauth_state"


@dataclass(frozen=True)
class SessionIdentity:
    """Who a valid session token belongs to."""

    user_id: int
    email: str


def hash_password(password: str) -> str:
    """One-way salted bcrypt hash."""
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


def create_jwt(user_id: int, email: str, *, now: datetime | None = None) -> str:
    """Build a session JWT for the user; exp = now + JWT_EXPIRE_DAYS."""
    now = now or datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "userId": user_id,
        "email": email,
        "iat": now,
        "exp": now + timedelta(days=JWT_EXPIRE_DAYS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_jwt(token: str) -> dict:
    """Decode and verify JWT; raises JWTError if invalid or expired."""
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])


def identity_from_claims(claims: dict) -> SessionIdentity | None:
    """Map verified claims to an identity; None if required claims are missing."""
    if claims.get("purpose"):
        # not a session token (e.g. an OAuth state value)
        return None
    user_id = claims.get("userId")
    email = claims.get("email")
    if not isinstance(user_id, int) or isinstance(user_id, bool) or not email:
        return None
    return SessionIdentity(user_id=user_id, email=email)


def create_oauth_state(nonce: str) -> str:
    """
    Signed, short-lived value echoed back by Google to the callback (CSRF).
    nonce is the random value also set in the browser's state cookie, so a
    state minted for one browser is useless in another.
    """
    payload = {
        "purpose": OAUTH_STATE_PURPOSE,
        "nonce": nonce,
        "exp": datetime.now(UTC) + timedelta(seconds=OAUTH_STATE_MAX_AGE),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_oauth_state(state: str | None, nonce: str | None) -> bool:
    if not state or not nonce:
        return False
    try:
        claims = decode_jwt(state)
    except JWTError:
        return False
    if claims.get("purpose") != OAUTH_STATE_PURPOSE:
        return False
    expected = claims.get("nonce")
    return isinstance(expected, str) and secrets.compare_digest(expected, nonce)
