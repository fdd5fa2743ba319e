"""
Access gate middleware.
Runs the gate decision for every request and either redirects or lets the
request through with the resolved session on ``request.state.session``.
"""
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse

from api.auth.access_gate import evaluate
from utils.logger import get_logger


class AccessGateMiddleware(BaseHTTPMiddleware):
    """
    Email allow-list gate.

    ``get_resolver`` and ``get_gate`` are called per request so the instances
    wired up at startup (or swapped in tests) are always the ones used.
    """

    def __init__(self, app, get_resolver, get_gate):
        super().__init__(app)
        self.get_resolver = get_resolver
        self.get_gate = get_gate

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        gate = self.get_gate()

        def resolve_session():
            return self.get_resolver().resolve(request.cookies)

        # Remote session lookups block, so keep them off the event loop
        decision = await run_in_threadpool(evaluate, path, resolve_session, gate)
        email = decision.session.email if decision.session else None

        if decision.reason.startswith("session lookup failed"):
            get_logger().warning(f"{path}: {decision.reason}", "AccessGate")

        if decision.is_redirect:
            get_logger().log_gate_decision(path, email, decision.action.value, decision.location)
            return RedirectResponse(url=decision.location)

        request.state.session = decision.session
        return await call_next(request)
