# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Route guard – authentication and permission checks applied to every request
before it reaches a handler.

Evaluation order
----------------
1. Public prefix          → pass through, no lookups at all.
2. Auth-only route        → signed-in users are sent to ``/``; others pass.
3. Protected route        → no session: ``/login``; session without the
                            route's permission: ``/unauthorized``; else pass.
4. Session route          → no session: ``/login``; else pass.
5. Anything else          → ``default_policy`` ("allow" passes, "deny"
                            treats the path like a route nobody holds a
                            permission for).

Route matching is segment aware: ``/users`` covers ``/users`` and
``/users/7`` but not ``/users-export``.  ``/`` matches only itself.  When
several protected prefixes match, the longest one decides.

The guard only reads, and only opens a database session when the decision
depends on who is signed in (public paths and unlisted paths under "allow"
skip it).  If the database cannot be reached while deciding, the request is
denied.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Mapping, NamedTuple, Optional

from fastapi import Request, status
from fastapi.responses import RedirectResponse, Response
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from core.config import settings
from core.logger import logger
from core.permissions import PermissionResolver, RequestContext, RoutePermission
from core.session import SessionManager, session_manager as default_session_manager
from repository import Repository

ALLOW = "allow"
DENY = "deny"

# ---------------------------------------------------------------------------
# Route table
# ---------------------------------------------------------------------------

DEFAULT_PROTECTED_ROUTES: dict[str, str] = {
    "/": RoutePermission.DASHBOARD_VIEW.value,
    "/users": RoutePermission.USERS_VIEW.value,
    "/roles": RoutePermission.ROLES_VIEW.value,
    "/permissions": RoutePermission.PERMISSIONS_VIEW.value,
    "/user-roles": RoutePermission.USER_ROLES_VIEW.value,
    "/menus": RoutePermission.MENUS_VIEW.value,
    "/login-history": RoutePermission.LOGIN_HISTORY_VIEW.value,
}

DEFAULT_AUTH_ROUTES = (
    "/login",
    "/auth/login",
    "/auth/register",
    "/auth/forgot-password",
    "/auth/reset-password",
)

DEFAULT_SESSION_ROUTES = (
    "/auth/me",
    "/auth/profile",
    "/auth/change-password",
)

DEFAULT_PUBLIC_PREFIXES = (
    "/health",
    "/static",
    "/favicon.ico",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/unauthorized",
    "/auth/logout",
    "/auth/verify-email",
)


def path_matches(route: str, path: str) -> bool:
    if route == "/":
        return path == "/"
    route = route.rstrip("/")
    return path == route or path.startswith(route + "/")


def _matches_any(routes, path: str) -> bool:
    return any(path_matches(route, path) for route in routes)


def match_protected_route(routes: Mapping[str, str], path: str) -> Optional[str]:
    """Return the longest configured prefix covering *path*, or None."""
    matches = [route for route in routes if path_matches(route, path)]
    return max(matches, key=len) if matches else None


@dataclass(frozen=True)
class GuardConfig:
    protected_routes: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_PROTECTED_ROUTES))
    auth_routes: tuple = DEFAULT_AUTH_ROUTES
    session_routes: tuple = DEFAULT_SESSION_ROUTES
    public_prefixes: tuple = DEFAULT_PUBLIC_PREFIXES
    default_policy: str = ALLOW
    home_path: str = "/"
    login_path: str = "/login"
    unauthorized_path: str = "/unauthorized"

    def __post_init__(self):
        if self.default_policy not in (ALLOW, DENY):
            raise ValueError(f"default_policy must be 'allow' or 'deny', got {self.default_policy!r}")

    @classmethod
    def from_settings(cls) -> "GuardConfig":
        return cls(default_policy=settings.guard_default_policy)


class Decision(NamedTuple):
    """Outcome of one evaluation: ``location`` is None when the request may pass."""

    location: Optional[str]
    reason: str
    user_id: Optional[int] = None

    @property
    def allowed(self) -> bool:
        return self.location is None


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


class RouteGuard:
    def __init__(self, config: GuardConfig, sessions: SessionManager):
        self.config = config
        self.sessions = sessions

    def is_public(self, path: str) -> bool:
        return _matches_any(self.config.public_prefixes, path)

    def needs_lookup(self, path: str) -> bool:
        """False when *path* is decided without reading the session."""
        cfg = self.config
        if self.is_public(path):
            return False
        if _matches_any(cfg.auth_routes, path) or _matches_any(cfg.session_routes, path):
            return True
        if match_protected_route(cfg.protected_routes, path) is not None:
            return True
        return cfg.default_policy == DENY

    def evaluate(self, repo: Repository, request: Request, context: RequestContext) -> Decision:
        cfg = self.config
        path = request.url.path

        if self.is_public(path):
            return Decision(None, "public")

        if _matches_any(cfg.auth_routes, path):
            user = self.sessions.resolve(repo, request)
            if user is not None:
                return Decision(cfg.home_path, "already signed in", user.id)
            return Decision(None, "auth route")

        route = match_protected_route(cfg.protected_routes, path)
        if route is not None:
            return self._require(repo, request, context, cfg.protected_routes[route])

        if _matches_any(cfg.session_routes, path):
            return self._require(repo, request, context, None)

        if cfg.default_policy == ALLOW:
            return Decision(None, "unlisted, default allow")
        user = self.sessions.resolve(repo, request)
        if user is None:
            return Decision(cfg.login_path, "unlisted, no session")
        return Decision(cfg.unauthorized_path, "unlisted, default deny", user.id)

    def _require(
        self,
        repo: Repository,
        request: Request,
        context: RequestContext,
        permission: Optional[str],
    ) -> Decision:
        user = self.sessions.resolve(repo, request)
        if user is None:
            return Decision(self.config.login_path, "no session")
        if permission is None:
            return Decision(None, "session", user.id)
        if not PermissionResolver(repo, context).has_permission(user, permission):
            return Decision(self.config.unauthorized_path, f"missing {permission}", user.id)
        return Decision(None, f"granted {permission}", user.id)


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


class RouteGuardMiddleware(BaseHTTPMiddleware):
    """
    Runs :class:`RouteGuard` once per request.  Leaves ``request.state.user_id``
    (None when unknown) and ``request.state.auth_context`` (the per-request
    permission memo) behind for the handlers.
    """

    def __init__(
        self,
        app,
        config: Optional[GuardConfig] = None,
        session_factory: Optional[Callable[[], Session]] = None,
        sessions: Optional[SessionManager] = None,
    ):
        super().__init__(app)
        self.guard = RouteGuard(config or GuardConfig.from_settings(), sessions or default_session_manager)
        self._session_factory = session_factory

    @property
    def session_factory(self) -> Callable[[], Session]:
        if self._session_factory is None:
            from database import SessionLocal

            self._session_factory = SessionLocal
        return self._session_factory

    def _evaluate(self, request: Request, context: RequestContext) -> Decision:
        db = self.session_factory()
        try:
            return self.guard.evaluate(Repository(db), request, context)
        finally:
            db.close()

    async def dispatch(self, request: Request, call_next) -> Response:
        context = RequestContext()
        request.state.auth_context = context
        request.state.user_id = None

        path = request.url.path
        if not self.guard.needs_lookup(path):
            return await call_next(request)

        start = time.perf_counter()
        try:
            decision = await run_in_threadpool(self._evaluate, request, context)
        except Exception:
            logger.exception("Route guard failed, denying | path=%s", path)
            decision = Decision(self.guard.config.unauthorized_path, "guard error")
        elapsed_ms = (time.perf_counter() - start) * 1000

        request.state.user_id = decision.user_id
        if decision.allowed:
            return await call_next(request)

        logger.info(
            "guard redirect %s %s -> %s | user_id=%s reason=%s latency=%.1fms",
            request.method,
            path,
            decision.location,
            decision.user_id,
            decision.reason,
            elapsed_ms,
        )
        return RedirectResponse(decision.location, status_code=status.HTTP_303_SEE_OTHER)
