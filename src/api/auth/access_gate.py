"""
Access gate: decides, per request, whether to let it through or redirect it
to the login or unauthorized page.

The decision is a linear table evaluated in order; nothing is remembered
between requests.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, FrozenSet, Optional, Tuple

from api.auth.session import Session


class GateAction(str, Enum):
    ALLOW = "allow"
    LOGIN = "login"
    UNAUTHORIZED = "unauthorized"
    HOME = "home"


@dataclass(frozen=True)
class GateConfig:
    """Immutable gate configuration, built once at startup."""
    allowed_emails: FrozenSet[str]
    login_path: str = "/login"
    unauthorized_path: str = "/unauthorized"
    home_path: str = "/dashboard"
    callback_path: str = "/auth/callback"
    bypass_prefixes: Tuple[str, ...] = ("/auth/signout",)
    exempt_prefixes: Tuple[str, ...] = field(default_factory=tuple)
    root_path: str = "/"

    @classmethod
    def from_config(cls, config) -> 'GateConfig':
        return cls(
            allowed_emails=frozenset(config.ALLOWED_EMAILS),
            login_path=config.LOGIN_PATH,
            unauthorized_path=config.UNAUTHORIZED_PATH,
            home_path=config.HOME_PATH,
            callback_path=config.AUTH_CALLBACK_PATH,
            bypass_prefixes=(config.SIGNOUT_PATH,),
            exempt_prefixes=tuple(config.GATE_EXEMPT_PREFIXES),
        )

    def is_allowed(self, email: Optional[str]) -> bool:
        # Exact, case-sensitive match
        return email is not None and email in self.allowed_emails


@dataclass(frozen=True)
class GateDecision:
    action: GateAction
    location: Optional[str] = None
    session: Optional[Session] = None
    reason: str = ""

    @property
    def is_redirect(self) -> bool:
        return self.location is not None


def _matches_prefix(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


def evaluate(path: str, resolve_session: Callable[[], Optional[Session]],
             gate: GateConfig) -> GateDecision:
    """
    Decide what happens to a request for ``path``.

    Args:
        path: Request path
        resolve_session: Called at most once; returns the Session or None.
            Any exception it raises (normally SessionResolutionError) sends
            the caller to the login page
        gate: Gate configuration

    Returns:
        GateDecision; ``location`` is set for redirects
    """
    # 1. Callback completes the session exchange, so it never needs one
    if _matches_prefix(path, gate.callback_path):
        return GateDecision(GateAction.ALLOW, reason="auth callback")
    for prefix in gate.bypass_prefixes + gate.exempt_prefixes:
        if _matches_prefix(path, prefix):
            return GateDecision(GateAction.ALLOW, reason="exempt path")

    # 2. Resolve the session; failure fails closed
    try:
        session = resolve_session()
    except Exception as e:
        if path == gate.login_path:
            return GateDecision(GateAction.ALLOW, reason=f"session lookup failed: {e}")
        return GateDecision(GateAction.LOGIN, location=gate.login_path,
                            reason=f"session lookup failed: {e}")

    # 3. Anonymous
    if session is None:
        if path == gate.login_path:
            return GateDecision(GateAction.ALLOW, reason="login page")
        return GateDecision(GateAction.LOGIN, location=gate.login_path, reason="no session")

    allowed = gate.is_allowed(session.email)

    # 4. Signed in but not on the allow list
    if not allowed:
        if path == gate.unauthorized_path:
            return GateDecision(GateAction.ALLOW, session=session, reason="unauthorized page")
        return GateDecision(GateAction.UNAUTHORIZED, location=gate.unauthorized_path,
                            session=session, reason="email not allow-listed")

    # 5. Authorized users skip the login page
    if path in (gate.login_path, gate.root_path):
        return GateDecision(GateAction.HOME, location=gate.home_path,
                            session=session, reason="already signed in")

    # 6.
    return GateDecision(GateAction.ALLOW, session=session)
