"""
FastAPI dependencies for authentication.
Provides the session resolver, the current session (placed on request.state by
the access gate), and a Supabase client that acts as the signed-in user.
"""
from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from api.auth.access_gate import GateConfig
from api.auth.session import Session, SessionResolver
from api.auth.supabase_auth import SupabaseAuth
from errors import SupabaseError
from store.supabase_client import SupabaseClient, get_client

# Will be initialized in main.py when the app starts
_session_resolver: Optional[SessionResolver] = None
_gate_config: Optional[GateConfig] = None
_supabase_auth: Optional[SupabaseAuth] = None


def init_auth(session_resolver, gate_config, supabase_auth=None):
    """Initialize auth dependencies with actual instances. Called from main.py."""
    global _session_resolver, _gate_config, _supabase_auth
    _session_resolver = session_resolver
    _gate_config = gate_config
    _supabase_auth = supabase_auth


def reset_auth():
    """Forget initialized instances (used between tests)."""
    init_auth(None, None, None)


def build_auth_from_config():
    """Create (resolver, gate config, supabase auth) from config values."""
    import config

    supabase_auth = None
    if config.SUPABASE_URL and config.SUPABASE_ANON_KEY:
        supabase_auth = SupabaseAuth(get_client())

    resolver = SessionResolver(
        cookie_name=config.SUPABASE_AUTH_COOKIE,
        jwt_secret=config.SUPABASE_JWT_SECRET or None,
        audience=config.SUPABASE_JWT_AUDIENCE,
        auth_client=supabase_auth,
    )
    return resolver, GateConfig.from_config(config), supabase_auth


def _lazy_init():
    """Lazy-initialize auth from config if not already done."""
    if _session_resolver is not None and _gate_config is not None:
        return
    init_auth(*build_auth_from_config())


def get_session_resolver() -> SessionResolver:
    _lazy_init()
    return _session_resolver


def get_gate_config() -> GateConfig:
    _lazy_init()
    return _gate_config


def get_supabase_auth() -> SupabaseAuth:
    _lazy_init()
    if _supabase_auth is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Supabase auth is not configured",
        )
    return _supabase_auth


def get_current_session(request: Request) -> Session:
    """
    FastAPI dependency returning the caller's Session.

    The access gate has already resolved it for every gated path; the
    resolver is only consulted again for exempt paths.
    """
    session = getattr(request.state, "session", None)
    if session is None:
        try:
            session = get_session_resolver().resolve(request.cookies)
        except Exception:
            session = None
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not signed in",
        )
    return session


def get_allowed_session(session: Session = Depends(get_current_session)) -> Session:
    """Session whose email is on the allow list."""
    if not get_gate_config().is_allowed(session.email):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized",
        )
    return session


def get_user_store(session: Session = Depends(get_allowed_session)) -> SupabaseClient:
    """Supabase client acting as the signed-in user (row-level security applies)."""
    try:
        return get_client(access_token=session.access_token)
    except SupabaseError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )
