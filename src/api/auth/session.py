"""
Supabase session resolution from request cookies.
Access tokens are verified locally with PyJWT when the project JWT secret is
configured, otherwise the auth server is asked via /auth/v1/user.
"""
import base64
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

import jwt

from errors import SessionResolutionError, SupabaseError

BASE64_PREFIX = "base64-"

# Browsers cap a cookie at ~4KB; longer values are split into name.0, name.1, ...
MAX_CHUNK_SIZE = 3180


@dataclass(frozen=True)
class Session:
    """A signed-in user's tokens, as issued by Supabase Auth."""
    email: Optional[str]
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None
    user_id: Optional[str] = None


def encode_session_cookie(access_token: str, refresh_token: str = None) -> str:
    """Cookie value in the auth-helpers array layout, base64 wrapped."""
    payload = json.dumps([access_token, refresh_token, None, None, None])
    encoded = base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")
    return BASE64_PREFIX + encoded


def split_session_cookie(cookie_name: str, value: str,
                         chunk_size: int = MAX_CHUNK_SIZE) -> List[Tuple[str, str]]:
    """(name, value) pairs to set; a single cookie when the value fits."""
    if len(value) <= chunk_size:
        return [(cookie_name, value)]
    return [
        (f"{cookie_name}.{i}", value[start:start + chunk_size])
        for i, start in enumerate(range(0, len(value), chunk_size))
    ]


def read_session_cookie(cookies: Mapping[str, str], cookie_name: str) -> Optional[str]:
    """
    Return the raw session cookie, joining chunked cookies (name.0, name.1, ...)
    when the single cookie is absent.
    """
    value = cookies.get(cookie_name)
    if value:
        return value

    chunks = []
    idx = 0
    while f"{cookie_name}.{idx}" in cookies:
        chunks.append(cookies[f"{cookie_name}.{idx}"])
        idx += 1
    return "".join(chunks) or None


def parse_session_cookie(raw: str) -> Optional[Dict[str, Any]]:
    """
    Decode a session cookie into {'access_token', 'refresh_token', ...}.

    Accepts the JSON array layout ([access, refresh, ...]) and the JSON
    object layout, either plain or base64 wrapped. Returns None for anything
    malformed.
    """
    if not raw:
        return None

    text = raw
    if text.startswith(BASE64_PREFIX):
        encoded = text[len(BASE64_PREFIX):]
        try:
            text = base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4)).decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            return None

    try:
        data = json.loads(text)
    except ValueError:
        return None

    if isinstance(data, list):
        if not data or not isinstance(data[0], str):
            return None
        return {
            "access_token": data[0],
            "refresh_token": data[1] if len(data) > 1 else None,
        }

    if isinstance(data, dict) and isinstance(data.get("access_token"), str):
        return data

    return None


class SessionResolver:
    """Resolves the caller's Session from request cookies."""

    def __init__(self, cookie_name: str, jwt_secret: str = None,
                 audience: str = "authenticated", auth_client=None):
        """
        Args:
            cookie_name: Name of the Supabase auth cookie
            jwt_secret: Project JWT secret; enables local verification
            audience: Expected 'aud' claim of access tokens
            auth_client: SupabaseAuth used for remote lookup when no secret is set
        """
        if not jwt_secret and auth_client is None:
            raise ValueError("SessionResolver needs a JWT secret or an auth client")
        self.cookie_name = cookie_name
        self.jwt_secret = jwt_secret
        self.audience = audience
        self.auth_client = auth_client

    def resolve(self, cookies: Mapping[str, str]) -> Optional[Session]:
        """
        Returns:
            Session if the cookie carries a valid, unexpired access token,
            None if there is no usable session.

        Raises:
            SessionResolutionError: the auth server could not be reached
        """
        token_bundle = parse_session_cookie(read_session_cookie(cookies, self.cookie_name))
        if not token_bundle:
            return None

        access_token = token_bundle["access_token"]
        refresh_token = token_bundle.get("refresh_token")

        if self.jwt_secret:
            payload = self.verify_token(access_token)
            if not payload:
                return None
            return Session(
                email=payload.get("email"),
                access_token=access_token,
                refresh_token=refresh_token,
                expires_at=payload.get("exp"),
                user_id=payload.get("sub"),
            )

        try:
            user = self.auth_client.get_user(access_token)
        except SupabaseError as e:
            raise SessionResolutionError(str(e)) from e
        if not user:
            return None
        return Session(
            email=user.get("email"),
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=token_bundle.get("expires_at"),
            user_id=user.get("id"),
        )

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Verify and decode an access token.

        Returns:
            Decoded payload dict if valid, None if invalid/expired.
        """
        try:
            return jwt.decode(
                token,
                self.jwt_secret,
                algorithms=["HS256"],
                audience=self.audience,
            )
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None
