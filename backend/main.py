# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
FastAPI application factory.

Responsibilities
----------------
* Instantiate the FastAPI app.
* Register CORS, request logging and the route guard.
* Mount the feature routers (auth, admin).
* Serve the dashboard summary, the login / unauthorized landing endpoints
  and a /health endpoint for container liveness checks.

Production note
---------------
CORS allow_origins is set to localhost only.  In a production deployment
this must be changed to the exact frontend origin.
"""

import time
from typing import Callable, Optional

from fastapi import Depends, FastAPI, Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from auth.router import router as auth_router
from admin.router import router as admin_router
from core.dependencies import require_permission
from core.exceptions import AuthenticationFailure, AuthorizationFailure
from core.guard import RouteGuardMiddleware
from core.logger import logger
from core.permissions import RoutePermission
from database import get_db
from models import Permission, Role, User


# ---------------------------------------------------------------------------
# Request-logging middleware
# ---------------------------------------------------------------------------
# Logs every inbound request: method, path, client IP, status, latency.
# Sensitive paths (login payload, password fields, cookies) are NOT echoed –
# only the URL and metadata are recorded.


class _RequestLogMiddleware(BaseHTTPMiddleware):
    """Log method, path, client IP, response status and latency (ms)."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        client_ip = request.client.host if request.client else "unknown"

        logger.info(
            "%s %s | client=%s status=%d latency=%.1fms",
            request.method,
            request.url.path,
            client_ip,
            response.status_code,
            elapsed_ms,
        )
        return response


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


def dashboard(
    current_user: User = Depends(require_permission(RoutePermission.DASHBOARD_VIEW)),
    db: Session = Depends(get_db),
):
    """Landing summary for the signed-in user."""
    return {
        "user": {"id": current_user.id, "email": current_user.email, "name": current_user.full_name},
        "counts": {
            "users": db.query(User).count(),
            "active_users": db.query(User).filter(User.is_active.is_(True)).count(),
            "roles": db.query(Role).count(),
            "permissions": db.query(Permission).count(),
        },
    }


def login_page():
    return {"detail": "Sign in with POST /auth/login"}


def unauthorized_page():
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"detail": "You do not have permission to access this page."},
    )


def health():
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


async def _authentication_failed(request: Request, exc: AuthenticationFailure):
    return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"detail": str(exc)})


async def _authorization_failed(request: Request, exc: AuthorizationFailure):
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": str(exc)})


def create_app(session_factory: Optional[Callable[[], Session]] = None) -> FastAPI:
    """
    Build the application.  *session_factory* feeds the route guard; it
    defaults to ``database.SessionLocal``.
    """
    app = FastAPI(title="TC Admin", version="1.0.0")

    # Middleware added last runs first: CORS → request log → route guard.
    app.add_middleware(RouteGuardMiddleware, session_factory=session_factory)
    app.add_middleware(_RequestLogMiddleware)
    # In development we allow localhost:8000.  Tighten to your production
    # domain before deploying.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:8000"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type"],
    )

    app.add_exception_handler(AuthenticationFailure, _authentication_failed)
    app.add_exception_handler(AuthorizationFailure, _authorization_failed)

    app.include_router(auth_router)
    app.include_router(admin_router)

    app.add_api_route("/", dashboard, methods=["GET"], tags=["pages"])
    app.add_api_route("/login", login_page, methods=["GET"], tags=["pages"])
    app.add_api_route("/unauthorized", unauthorized_page, methods=["GET"], tags=["pages"])
    app.add_api_route("/health", health, methods=["GET"], tags=["pages"])

    @app.on_event("startup")
    async def _on_startup():
        logger.info("TC Admin service starting up")

    @app.on_event("shutdown")
    async def _on_shutdown():
        logger.info("TC Admin service shutting down")

    return app


app = create_app()
