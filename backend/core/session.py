# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Cookie sessions.

A session is a random token held in an ``HttpOnly`` cookie and mirrored in
``users.session_token`` together with its expiry.  Every login mints a new
token, logout and password reset clear it, so a leaked cookie is only good
until the owner's next login or logout.  The user's ``uuid`` is an identifier,
not a credential, and is never placed in the cookie.
"""

from datetime import timedelta
from typing import Optional

from fastapi import Request, Response

from core.config import settings
from core.security import generate_token
from models import User
from repository import Repository, utcnow


class SessionManager:
    def __init__(
        self,
        cookie_name: Optional[str] = None,
        max_age_seconds: Optional[int] = None,
        secure: Optional[bool] = None,
    ):
        self.cookie_name = cookie_name or settings.session_cookie_name
        self.max_age_seconds = max_age_seconds or settings.session_max_age_seconds
        self.secure = settings.cookie_secure if secure is None else secure

    def issue(self, repo: Repository, response: Response, user: User) -> str:
        """Mint a session for *user*, persist it and set the cookie."""
        token = generate_token()
        repo.update_user(
            user.id,
            {
                "session_token": token,
                "session_expires_at": utcnow() + timedelta(seconds=self.max_age_seconds),
            },
        )
        response.set_cookie(
            key=self.cookie_name,
            value=token,
            max_age=self.max_age_seconds,
            path="/",
            httponly=True,
            secure=self.secure,
            samesite="lax",
        )
        return token

    def read_token(self, request: Request) -> Optional[str]:
        return request.cookies.get(self.cookie_name) or None

    def resolve(self, repo: Repository, request: Request) -> Optional[User]:
        """
        Map the request's cookie back to an active user.

        A missing, unknown or expired cookie, or one belonging to a disabled
        account, means "no session" – never an error.
        """
        token = self.read_token(request)
        if not token:
            return None
        user = repo.find_user_by_session_token(token)
        if user is None or not user.is_active:
            return None
        return user

    def revoke(self, repo: Repository, response: Response, user: Optional[User] = None) -> None:
        """Clear the cookie and, when the owner is known, the stored token."""
        if user is not None:
            repo.update_user(user.id, {"session_token": None, "session_expires_at": None})
        response.delete_cookie(
            key=self.cookie_name,
            path="/",
            httponly=True,
            secure=self.secure,
            samesite="lax",
        )


session_manager = SessionManager()
