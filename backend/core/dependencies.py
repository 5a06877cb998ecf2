# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
FastAPI dependency guards.

The route guard already turned away requests without a session or without
the page-level ``<resource>:view`` permission.  These dependencies re-check
inside the handler (the guard may be configured differently, e.g. in tests)
and enforce the finer ``create`` / ``update`` / ``delete`` / ``assign``
permissions that mutating endpoints need.
"""

from typing import Callable

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from core.exceptions import AuthenticationFailure, AuthorizationFailure
from core.permissions import PermissionResolver, RequestContext
from core.session import session_manager
from database import SessionLocal, get_db
from models import User
from repository import Repository


def get_session_factory() -> Callable[[], Session]:
    """Factory for side-channel sessions (login history).  Overridable in tests."""
    return SessionLocal


def get_repository(db: Session = Depends(get_db)) -> Repository:
    return Repository(db)


def get_request_context(request: Request) -> RequestContext:
    """The permission memo the route guard created for this request."""
    context = getattr(request.state, "auth_context", None)
    if context is None:
        context = RequestContext()
        request.state.auth_context = context
    return context


def get_permission_resolver(
    repo: Repository = Depends(get_repository),
    context: RequestContext = Depends(get_request_context),
) -> PermissionResolver:
    return PermissionResolver(repo, context)


def get_current_user(
    request: Request,
    repo: Repository = Depends(get_repository),
) -> User:
    """
    Dependency: resolve the session cookie to an active User.

    Raises AuthenticationFailure (401) when there is no valid session.
    """
    user = session_manager.resolve(repo, request)
    if user is None:
        raise AuthenticationFailure("Not authenticated")
    return user


def require_permission(permission: str):
    """
    Dependency factory: wraps :func:`get_current_user` and additionally
    asserts the user holds *permission*.  Raises AuthorizationFailure (403)
    otherwise.
    """
    permission = getattr(permission, "value", permission)

    def _guard(
        current_user: User = Depends(get_current_user),
        resolver: PermissionResolver = Depends(get_permission_resolver),
    ) -> User:
        if not resolver.has_permission(current_user, permission):
            raise AuthorizationFailure(f"Permission required: {permission}")
        return current_user

    return _guard
