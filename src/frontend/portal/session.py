"""Authenticated session: token + user persisted in a key/value store.

The store is whatever the UI hands in (Streamlit's ``st.session_state`` in the
app, a plain dict in tests). Tokens come from the backend's OAuth callback and
are decoded locally without signature verification; the backend is the one
that verifies them on every request.
"""
import logging
import os
from collections.abc import Mapping, MutableMapping

import jwt
from dotenv import load_dotenv
from pydantic import ValidationError

from .models import AuthToken, AuthUser

load_dotenv()

logger = logging.getLogger(__name__)

AUTH_TOKEN_KEY = "auth_token"
AUTH_USER_KEY = "auth_user"

LOGIN_PATH = "/login"
AUTH_FAILED_ERROR = "auth_failed"


def parse_jwt(token: str) -> dict | None:
    """Return the token's payload, or None if it is not a decodable JWT."""
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return None


def extract_auth_from_callback(query_params: Mapping) -> AuthToken | None:
    token = query_params.get("token")
    if not token:
        return None

    payload = parse_jwt(token)
    if not payload or payload.get("sub") is None:
        return None

    try:
        user = AuthUser(
            id=str(payload["sub"]),
            email=payload.get("email") or "",
            role=payload.get("role") or "",
        )
    except ValidationError:
        return None
    return AuthToken(access_token=token, user=user)


def google_auth_url(backend_url: str | None = None) -> str:
    base = backend_url or os.getenv("BACKEND_URL", "http://localhost:3001")
    return f"{base.rstrip('/')}/auth/google"


class Session:
    def __init__(self, storage: MutableMapping):
        self.storage = storage
        self.token: str | None = None
        self.user: AuthUser | None = None
        self.is_loading = True

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.is_admin

    def init(self) -> "Session":
        """Load token and user from storage. Both must be present."""
        token = self.storage.get(AUTH_TOKEN_KEY)
        raw_user = self.storage.get(AUTH_USER_KEY)
        self.token, self.user = None, None

        if token and raw_user:
            try:
                self.user = AuthUser.model_validate_json(raw_user)
                self.token = token
            except ValidationError:
                logger.warning("Discarding unreadable stored user")
        self.is_loading = False
        return self

    def sign_in(self, auth: AuthToken) -> None:
        self.storage[AUTH_TOKEN_KEY] = auth.access_token
        self.storage[AUTH_USER_KEY] = auth.user.model_dump_json()
        self.token = auth.access_token
        self.user = auth.user
        self.is_loading = False
        logger.info("Signed in as %s", auth.user.email)

    def sign_out(self) -> str:
        """Clear token and user; returns the path to redirect to."""
        self.storage.pop(AUTH_TOKEN_KEY, None)
        self.storage.pop(AUTH_USER_KEY, None)
        self.token = None
        self.user = None
        return LOGIN_PATH

    def complete_callback(self, query_params: Mapping) -> bool:
        """Handle the OAuth redirect. True when a session was established."""
        auth = extract_auth_from_callback(query_params)
        if auth is None:
            logger.warning("OAuth callback carried no usable token")
            return False
        self.sign_in(auth)
        return True
