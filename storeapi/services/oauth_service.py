"""Google / Facebook authorization-code login.

The provider's profile payload is normalized into ``SocialProfile`` right
here, so nothing past this module depends on a provider's response shape.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import requests

from storeapi.core import config
from storeapi.core.errors import AuthenticationError, ConfigurationError
from storeapi.logger import get_logger

logger = get_logger(__name__)

GRAPH_BASE = "https://graph.facebook.com/v18.0"


@dataclass(frozen=True)
class SocialProfile:
    provider: str
    provider_id: str
    email: Optional[str]
    display_name: Optional[str]


class OAuthProvider:
    name = ""
    authorize_url = ""
    token_url = ""
    profile_url = ""
    scope = ""

    def __init__(self, client_id: Optional[str], client_secret: Optional[str], base_url: str):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = f"{base_url.rstrip('/')}/api/auth/{self.name}/callback"

    def _require_credentials(self):
        if not self.client_id or not self.client_secret:
            raise ConfigurationError(f"{self.name} OAuth credentials missing")

    def authorization_url(self, state: str) -> str:
        self._require_credentials()
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": self.scope,
            "state": state,
        }
        return f"{self.authorize_url}?{urlencode(params)}"

    def exchange_code(self, code: str) -> str:
        self._require_credentials()
        try:
            r = requests.post(
                self.token_url,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "redirect_uri": self.redirect_uri,
                    "grant_type": "authorization_code",
                    "code": code,
                },
                timeout=30,
            )
            data = r.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("%s token exchange failed: %s", self.name, e)
            raise AuthenticationError("Authentication failed") from e

        if "error" in data or "access_token" not in data:
            logger.warning("%s token exchange rejected: %s", self.name, data.get("error"))
            raise AuthenticationError("Authentication failed")
        return data["access_token"]

    def fetch_profile(self, access_token: str) -> SocialProfile:
        try:
            r = requests.get(
                self.profile_url,
                params=self.profile_params(access_token),
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=30,
            )
            data = r.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("%s profile fetch failed: %s", self.name, e)
            raise AuthenticationError("Authentication failed") from e

        if "error" in data:
            logger.warning("%s profile fetch rejected: %s", self.name, data["error"])
            raise AuthenticationError("Authentication failed")
        return self.to_profile(data)

    def authenticate(self, code: str) -> SocialProfile:
        return self.fetch_profile(self.exchange_code(code))

    def profile_params(self, access_token: str) -> Dict[str, str]:
        return {}

    def to_profile(self, data: Dict[str, Any]) -> SocialProfile:
        raise NotImplementedError


class GoogleOAuth(OAuthProvider):
    name = "google"
    authorize_url = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url = "https://oauth2.googleapis.com/token"
    profile_url = "https://openidconnect.googleapis.com/v1/userinfo"
    scope = "openid email profile"

    def to_profile(self, data):
        if not data.get("sub"):
            raise AuthenticationError("Authentication failed")
        email = data.get("email") if data.get("email_verified", True) else None
        return SocialProfile(
            provider=self.name,
            provider_id=str(data["sub"]),
            email=email.strip().lower() if email else None,
            display_name=data.get("name"),
        )


class FacebookOAuth(OAuthProvider):
    name = "facebook"
    authorize_url = "https://www.facebook.com/v18.0/dialog/oauth"
    token_url = f"{GRAPH_BASE}/oauth/access_token"
    profile_url = f"{GRAPH_BASE}/me"
    scope = "email"

    def profile_params(self, access_token):
        return {"fields": "id,name,email", "access_token": access_token}

    def to_profile(self, data):
        if not data.get("id"):
            raise AuthenticationError("Authentication failed")
        email = data.get("email")
        return SocialProfile(
            provider=self.name,
            provider_id=str(data["id"]),
            email=email.strip().lower() if email else None,
            display_name=data.get("name"),
        )


def get_provider(name: str) -> OAuthProvider:
    if name == "google":
        return GoogleOAuth(config.GOOGLE_CLIENT_ID, config.GOOGLE_CLIENT_SECRET, config.BASE_URL)
    if name == "facebook":
        return FacebookOAuth(config.FACEBOOK_CLIENT_ID, config.FACEBOOK_CLIENT_SECRET, config.BASE_URL)
    raise ConfigurationError(f"Unknown OAuth provider: {name}")
