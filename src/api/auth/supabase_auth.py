"""
Supabase Auth (GoTrue) calls: OAuth sign-in URL with PKCE, code exchange at the
callback, user lookup for session validation, and sign-out.
"""
import base64
import hashlib
import secrets
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

from errors import SupabaseError
from store.supabase_client import SupabaseClient


def generate_pkce_pair() -> Tuple[str, str]:
    """Return (code_verifier, code_challenge) using the S256 method."""
    verifier = secrets.token_urlsafe(64)
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    challenge = base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")
    return verifier, challenge


class SupabaseAuth:
    """Auth endpoints of a Supabase project."""

    def __init__(self, client: SupabaseClient):
        self.client = client

    def build_authorize_url(self, provider: str, redirect_to: str, code_challenge: str) -> str:
        query = urlencode({
            "provider": provider,
            "redirect_to": redirect_to,
            "code_challenge": code_challenge,
            "code_challenge_method": "s256",
        })
        return f"{self.client.url}/auth/v1/authorize?{query}"

    def exchange_code_for_session(self, auth_code: str, code_verifier: str) -> Dict[str, Any]:
        """
        Trade the callback ``code`` for a session.

        Returns:
            Dict with access_token, refresh_token, expires_at and user

        Raises:
            SupabaseError: invalid code/verifier or transport failure
        """
        session = self.client.request(
            "POST", "/auth/v1/token",
            params={"grant_type": "pkce"},
            json={"auth_code": auth_code, "code_verifier": code_verifier},
        )
        if not session or not session.get("access_token"):
            raise SupabaseError("Auth server returned no session")
        return session

    def get_user(self, access_token: str) -> Optional[Dict[str, Any]]:
        """
        Look up the user behind an access token.

        Returns:
            User dict, or None when the token is rejected (expired, revoked)

        Raises:
            SupabaseError: transport failure or unexpected server error
        """
        user_client = SupabaseClient(
            self.client.url, self.client.api_key,
            access_token=access_token, timeout=self.client.timeout,
        )
        try:
            return user_client.request("GET", "/auth/v1/user")
        except SupabaseError as e:
            if e.status_code in (401, 403):
                return None
            raise

    def sign_out(self, access_token: str) -> None:
        """Revoke the session's refresh tokens."""
        user_client = SupabaseClient(
            self.client.url, self.client.api_key,
            access_token=access_token, timeout=self.client.timeout,
        )
        user_client.request("POST", "/auth/v1/logout")
