"""
Authentication routes - Google sign-in via Supabase (PKCE), callback,
sign-out, session info and the unauthorized page.
"""
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

import config
from api.auth.dependencies import (
    get_current_session, get_gate_config, get_session_resolver, get_supabase_auth,
)
from api.auth.models import ErrorResponse, LoginResponse, MessageResponse, SessionInfo
from api.auth.session import Session, encode_session_cookie, split_session_cookie
from errors import SessionResolutionError, SupabaseError
from utils.logger import get_logger

router = APIRouter()

VERIFIER_MAX_AGE = 600
SESSION_MAX_AGE = 60 * 60 * 24 * 365


def _safe_next(next_path: str) -> str:
    """Only same-site relative paths are followed after sign-in."""
    if not next_path or not next_path.startswith("/") or next_path.startswith("//"):
        return "/"
    return next_path


def _set_cookie(response, name, value, max_age):
    response.set_cookie(
        name, value,
        max_age=max_age,
        path="/",
        httponly=True,
        secure=config.SESSION_COOKIE_SECURE,
        samesite="lax",
    )


@router.get(
    "/login",
    response_model=LoginResponse,
    summary="Start Google sign-in",
)
async def login(next: str = Query("/", description="Path to return to after sign-in")):
    """
    Returns the provider sign-in URL and stores the PKCE verifier in a
    short-lived cookie for the callback. Signed-in users never get here;
    the gate sends them to the dashboard.
    """
    from api.auth.supabase_auth import generate_pkce_pair

    supabase_auth = get_supabase_auth()
    verifier, challenge = generate_pkce_pair()
    redirect_to = (
        f"{config.PUBLIC_BASE_URL}{config.AUTH_CALLBACK_PATH}"
        f"?next={quote(_safe_next(next), safe='/')}"
    )
    url = supabase_auth.build_authorize_url(config.OAUTH_PROVIDER, redirect_to, challenge)

    response = JSONResponse(LoginResponse(url=url, provider=config.OAUTH_PROVIDER).model_dump())
    _set_cookie(response, config.PKCE_VERIFIER_COOKIE, verifier, VERIFIER_MAX_AGE)
    return response


@router.get(
    "/auth/callback",
    summary="OAuth callback",
    response_class=RedirectResponse,
)
def auth_callback(
    request: Request,
    code: str = Query(None),
    next: str = Query("/"),
):
    """Exchange the provider code for a session, set the session cookie and continue to ``next``."""
    logger = get_logger()
    destination = _safe_next(next)
    if not code:
        return RedirectResponse(destination, status_code=status.HTTP_303_SEE_OTHER)

    verifier = request.cookies.get(config.PKCE_VERIFIER_COOKIE)
    if not verifier:
        return RedirectResponse(
            f"/auth/error?error={quote('Missing PKCE verifier')}",
            status_code=status.HTTP_303_SEE_OTHER,
        )

    try:
        session = get_supabase_auth().exchange_code_for_session(code, verifier)
    except SupabaseError as e:
        logger.log_error("auth_callback", type(e).__name__, str(e))
        return RedirectResponse(
            f"/auth/error?error={quote(str(e))}",
            status_code=status.HTTP_303_SEE_OTHER,
        )

    response = RedirectResponse(destination, status_code=status.HTTP_303_SEE_OTHER)
    value = encode_session_cookie(session["access_token"], session.get("refresh_token"))
    for name, chunk in split_session_cookie(config.SUPABASE_AUTH_COOKIE, value):
        _set_cookie(response, name, chunk, SESSION_MAX_AGE)
    response.delete_cookie(config.PKCE_VERIFIER_COOKIE, path="/")

    email = (session.get("user") or {}).get("email")
    logger.info(f"Signed in: {email}", "Auth")
    return response


@router.get(
    "/auth/error",
    response_model=ErrorResponse,
    summary="Sign-in failure",
)
async def auth_error(error: str = Query("Authentication failed")):
    return JSONResponse({"error": error}, status_code=status.HTTP_401_UNAUTHORIZED)


@router.post(
    "/auth/signout",
    response_model=MessageResponse,
    summary="Sign out",
)
def signout(request: Request):
    """
    Revoke the session with Supabase (best effort) and clear every ``sb-``
    cookie. Reachable by anyone, including users who are not allow-listed.
    """
    logger = get_logger()
    session = None
    try:
        session = get_session_resolver().resolve(request.cookies)
    except SessionResolutionError as e:
        logger.warning(f"Could not resolve session at sign-out: {e}", "Auth")

    if session is not None:
        try:
            get_supabase_auth().sign_out(session.access_token)
        except Exception as e:
            logger.warning(f"Session revocation failed: {e}", "Auth")

    response = JSONResponse(MessageResponse(message="Signed out").model_dump())
    for name in request.cookies:
        if name.startswith("sb-"):
            response.delete_cookie(name, path="/")
    return response


@router.get(
    "/auth/session",
    response_model=SessionInfo,
    summary="Current session",
)
async def current_session(session: Session = Depends(get_current_session)):
    return SessionInfo(
        email=session.email,
        user_id=session.user_id,
        expires_at=session.expires_at,
        allowed=get_gate_config().is_allowed(session.email),
    )


@router.get(
    "/unauthorized",
    response_model=MessageResponse,
    summary="Access denied page",
)
async def unauthorized(request: Request):
    session = getattr(request.state, "session", None)
    email = session.email if session else None
    return MessageResponse(
        message="Access denied",
        detail=f"{email or 'This account'} is not authorized to use this application. "
               "Sign out and sign in with an authorized account.",
    )
