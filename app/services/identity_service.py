"""
Identity service: password registration/login and Google sign-in.

Every success path returns {"token", "user"} where token is a fresh session
JWT. Login failures are deliberately uniform so callers cannot tell an
unknown email from a wrong password.
"""
import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from errors import Conflict, InvalidInput, StorageFault, Unauthorized, UpstreamAuthFault
from models import User
from security import create_jwt, hash_password, verify_password
from services.google_oauth import GoogleOAuthClient

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

# Compared against when the email is unknown so both failure paths cost a bcrypt check
_DUMMY_HASH = hash_password("not-a-real-password")


def _session_response(user: User) -> dict:
    return {"token": create_jwt(user.id, user.email), "user": user.to_dict()}


class IdentityService:
    def __init__(self, db: Session, oauth_client: GoogleOAuthClient | None = None):
        self.db = db
        self.oauth_client = oauth_client

    def get_by_email(self, email: str) -> User | None:
        return self.db.query(User).filter(User.email == email).first()

    def register(self, email: str | None, password: str | None) -> dict:
        email = (email or "").strip()
        if not email or not password:
            raise InvalidInput("Email and password are required")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidInput(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if self.get_by_email(email):
            raise Conflict("Email already registered")

        user = User(email=email, password_hash=hash_password(password))
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # lost a race with a concurrent registration of the same email
            self.db.rollback()
            raise Conflict("Email already registered")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to create user: %s", e)
            raise StorageFault("Failed to create user")
        self.db.refresh(user)
        logger.info("Registered user %s", user.id)
        return _session_response(user)

    def login(self, email: str | None, password: str | None) -> dict:
        email = (email or "").strip()
        if not email or not password:
            raise InvalidInput("Email and password are required")
        user = self.get_by_email(email)
        if user is None:
            verify_password(password, _DUMMY_HASH)
            raise Unauthorized("Invalid email or password")
        if not verify_password(password, user.password_hash):
            raise Unauthorized("Invalid email or password")
        return _session_response(user)

    def resolve_oauth_identity(self, code: str) -> dict:
        """
        Exchange a Google authorization code and map the identity to a User.

        Matches an existing user by Google subject or by email, so a password
        account is linked on its first Google sign-in. Profile fields are only
        filled in where absent; otherwise a new Google-only user is created.
        """
        if self.oauth_client is None or not self.oauth_client.enabled:
            raise UpstreamAuthFault("Google OAuth not configured")
        if not code:
            raise InvalidInput("Missing authorization code")
        identity = self.oauth_client.exchange_code(code)

        user = (
            self.db.query(User)
            .filter(or_(User.google_id == identity.subject, User.email == identity.email))
            .order_by(User.google_id.is_(None))
            .first()
        )
        try:
            if user is None:
                user = User(
                    email=identity.email,
                    google_id=identity.subject,
                    name=identity.name,
                    picture=identity.picture,
                )
                self.db.add(user)
                self.db.commit()
                logger.info("Created user from Google sign-in")
            else:
                changed = False
                if not user.google_id:
                    user.google_id = identity.subject
                    changed = True
                if not user.name and identity.name:
                    user.name = identity.name
                    changed = True
                if not user.picture and identity.picture:
                    user.picture = identity.picture
                    changed = True
                if changed:
                    self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to save Google user: %s", e)
            raise StorageFault("Failed to create user")
        self.db.refresh(user)
        return _session_response(user)
