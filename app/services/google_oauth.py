"""
Google OAuth 2.0: consent URL and authorization-code exchange.

exchange_code turns the code Google hands to our callback into a verified
identity (subject, email, name, picture) by calling the token endpoint and
then the OpenID userinfo endpoint with the fresh access token. We do not keep
Google's tokens; the identity is all the identity service needs.
"""
import logging
from dataclasses import dataclass
from urllib.parse import urlencode

import requests

from config import GOOGLE_REQUEST_TIMEOUT
from errors import UpstreamAuthFault

logger = logging.getLogger(__name__)

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


@dataclass(frozen=True)
class GoogleIdentity:
    subject: str
    email: str
    name: str | None = None
    picture: str | None = None


class GoogleOAuthClient:
    """Configured once at startup; disabled when client id or secret is unset."""

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri

    @property
    def enabled(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def build_auth_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{AUTH_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> GoogleIdentity:
        """Exchange the authorization code; raises UpstreamAuthFault on any failure."""
        if not self.enabled:
            raise UpstreamAuthFault("Google OAuth not configured")
        try:
            token_res = requests.post(
                TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": self.redirect_uri,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=GOOGLE_REQUEST_TIMEOUT,
            )
            token_data = token_res.json()
            if "error" in token_data:
                raise UpstreamAuthFault(
                    f"Token exchange failed: {token_data.get('error_description', token_data['error'])}"
                )
            access_token = token_data.get("access_token")
            if not access_token:
                raise UpstreamAuthFault("Token exchange did not return access_token")

            userinfo_res = requests.get(
                USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=GOOGLE_REQUEST_TIMEOUT,
            )
            userinfo_res.raise_for_status()
            userinfo = userinfo_res.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("Google OAuth exchange failed: %s", e)
            raise UpstreamAuthFault("Google OAuth exchange failed") from e

        subject = userinfo.get("sub")
        email = userinfo.get("email")
        if not subject or not email:
            raise UpstreamAuthFault("Google userinfo missing sub or email")
        return GoogleIdentity(
            subject=str(subject),
            email=email,
            name=userinfo.get("name"),
            picture=userinfo.get("picture"),
        )
