# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Auth endpoints – registration, login/logout, profile, password change,
email verification and password reset.

Security notes
--------------
* Login returns the *same* error message whether the email doesn't exist,
  the password is wrong or the account is disabled.  This prevents
  user-enumeration attacks.  The real reason is kept in login history.
* Every login mints a fresh session token; logout, password change and
  password reset retire the old one.
* Verification and reset links fail with one message whether the token never
  existed, expired, or was already used, so the endpoint is no oracle for
  guessing tokens.
* forgot-password answers identically for known and unknown emails.
"""

from datetime import timedelta
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auth.schemas import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    UpdateProfileRequest,
    UserInfoResponse,
    VerifyEmailRequest,
)
from core.config import settings
from core.dependencies import (
    get_current_user,
    get_permission_resolver,
    get_repository,
    get_session_factory,
)
from core.exceptions import InvalidHashFormat, TokenExpiredOrUsed
from core.logger import logger
from core.login_history import STATUS_FAILED, STATUS_SUCCESS, record_login_attempt
from core.permissions import PermissionResolver
from core.security import (
    generate_token,
    generate_uuid,
    get_client_ip,
    get_user_agent,
    hash_password,
    verify_password,
)
from core.session import session_manager
from database import atomic
from models import EmailVerificationToken, User
from repository import Repository, utcnow

router = APIRouter(prefix="/auth", tags=["auth"])

# Generic message used for "no such email", "wrong password" and "disabled"
_LOGIN_FAIL = "Invalid credentials"
# Generic message for every unusable verification / reset token
_LINK_FAIL = "This link is invalid or has expired."
_RESET_SENT = "If an account exists for this email, a password reset link has been sent."


def user_info(user: User, resolver: PermissionResolver) -> UserInfoResponse:
    return UserInfoResponse(
        id=user.id,
        uuid=user.uuid,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        phone=user.phone,
        date_of_birth=user.date_of_birth,
        gender=user.gender,
        avatar_url=user.avatar_url,
        is_active=user.is_active,
        email_verified_at=user.email_verified_at,
        last_login=user.last_login,
        roles=sorted(role.name for role in user.roles),
        permissions=sorted(resolver.resolve(user.id)),
    )


def _issue_verification_token(db: Session, user_id: int) -> str:
    """Stage a verification token on *db*; the caller commits."""
    token = generate_token()
    db.add(
        EmailVerificationToken(
            user_id=user_id,
            token=token,
            expires_at=utcnow() + timedelta(minutes=settings.verification_token_ttl_minutes),
        )
    )
    return token


# ---------------------------------------------------------------------------
# POST /auth/register
# ---------------------------------------------------------------------------


@router.post("/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def register(body: RegisterRequest, repo: Repository = Depends(get_repository)):
    """
    Create an account in the unverified state and stage its email
    verification token.  No session is issued.
    """
    if repo.find_user_by_email(body.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists")

    db = repo.db
    try:
        with atomic(db):
            user = User(
                uuid=generate_uuid(),
                email=body.email,
                password_hash=hash_password(body.password),
                first_name=body.first_name,
                last_name=body.last_name,
                is_active=True,
                email_verified_at=None,
            )
            db.add(user)
            db.flush()  # get user.id before commit
            _issue_verification_token(db, user.id)
    except IntegrityError:
        # Lost a race with a concurrent registration of the same email
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists")

    logger.info("user registered | user_id=%d", user.id)
    return MessageResponse(detail="Registration successful. Please verify your email.")


# ---------------------------------------------------------------------------
# POST /auth/login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=LoginResponse)
def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    repo: Repository = Depends(get_repository),
    resolver: PermissionResolver = Depends(get_permission_resolver),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
):
    """Check credentials, set the session cookie and record the attempt."""
    ip_address = get_client_ip(request)
    user_agent = get_user_agent(request)

    def _fail(user_id: int, reason: str):
        record_login_attempt(session_factory, user_id, STATUS_FAILED, reason, ip_address, user_agent)
        logger.info("login failed | user_id=%d reason=%s ip=%s", user_id, reason, ip_address)
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=_LOGIN_FAIL)

    user = repo.find_user_by_email(body.email)

    # Unified failure path – no information leaks about whether the email exists
    if user is None or not user.password_hash:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=_LOGIN_FAIL)

    try:
        valid = verify_password(body.password, user.password_hash)
    except InvalidHashFormat:
        logger.error("stored password hash is malformed | user_id=%d", user.id)
        raise _fail(user.id, "Malformed password hash")

    if not valid:
        raise _fail(user.id, "Invalid password")

    if not user.is_active:
        raise _fail(user.id, "Account disabled")

    if settings.require_verified_email and user.email_verified_at is None:
        record_login_attempt(
            session_factory, user.id, STATUS_FAILED, "Email not verified", ip_address, user_agent
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Please verify your email first",
        )

    session_manager.issue(repo, response, user)
    repo.update_user(user.id, {"last_login": utcnow()})
    record_login_attempt(session_factory, user.id, STATUS_SUCCESS, None, ip_address, user_agent)
    logger.info("login success | user_id=%d ip=%s", user.id, ip_address)

    return LoginResponse(detail="Login successful", user=user_info(user, resolver))


# ---------------------------------------------------------------------------
# POST /auth/logout
# ---------------------------------------------------------------------------


@router.post("/logout", response_model=MessageResponse)
def logout(request: Request, response: Response, repo: Repository = Depends(get_repository)):
    """Clear the cookie and retire the stored session token."""
    user = session_manager.resolve(repo, request)
    session_manager.revoke(repo, response, user)
    if user is not None:
        logger.info("logout | user_id=%d", user.id)
    return MessageResponse(detail="Logged out")


# ---------------------------------------------------------------------------
# GET /auth/me
# ---------------------------------------------------------------------------


@router.get("/me", response_model=UserInfoResponse)
def me(
    current_user: User = Depends(get_current_user),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    """Return the authenticated user's profile, roles and effective permissions."""
    return user_info(current_user, resolver)


# ---------------------------------------------------------------------------
# PUT /auth/profile
# ---------------------------------------------------------------------------


@router.put("/profile", response_model=MessageResponse)
def update_profile(
    body: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """
    Update name, email, phone, birth date, gender and avatar.  Changing the
    email puts the account back into the unverified state and stages a new
    verification token.
    """
    email_changed = body.email != current_user.email
    if email_changed:
        owner = repo.find_user_by_email(body.email)
        if owner is not None and owner.id != current_user.id:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email is already in use.")

    db = repo.db
    try:
        with atomic(db):
            current_user.first_name = body.first_name
            current_user.last_name = body.last_name
            current_user.phone = body.phone
            current_user.date_of_birth = body.date_of_birth
            current_user.gender = body.gender
            current_user.avatar_url = body.avatar_url
            if email_changed:
                current_user.email = body.email
                current_user.email_verified_at = None
                _issue_verification_token(db, current_user.id)
    except IntegrityError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email is already in use.")

    if email_changed:
        logger.info("email changed, verification required | user_id=%d", current_user.id)
        return MessageResponse(detail="Profile updated. Please verify your new email.")
    return MessageResponse(detail="Profile updated successfully.")


# ---------------------------------------------------------------------------
# PUT /auth/change-password
# ---------------------------------------------------------------------------


@router.put("/change-password", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest,
    response: Response,
    current_user: User = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """
    Change the authenticated user's password after re-checking the current
    one, then rotate the session so cookies issued before the change stop
    working.
    """
    try:
        valid = bool(current_user.password_hash) and verify_password(
            body.current_password, current_user.password_hash
        )
    except InvalidHashFormat:
        logger.error("stored password hash is malformed | user_id=%d", current_user.id)
        valid = False
    if not valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect.",
        )

    repo.update_user(current_user.id, {"password_hash": hash_password(body.new_password)})
    session_manager.issue(repo, response, current_user)
    logger.info("password changed | user_id=%d", current_user.id)
    return MessageResponse(detail="Password updated successfully.")


# ---------------------------------------------------------------------------
# POST /auth/verify-email
# ---------------------------------------------------------------------------


@router.post("/verify-email", response_model=MessageResponse)
def verify_email(body: VerifyEmailRequest, repo: Repository = Depends(get_repository)):
    try:
        user = repo.consume_verification_token(body.token)
    except TokenExpiredOrUsed:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_LINK_FAIL)
    logger.info("email verified | user_id=%d", user.id)
    return MessageResponse(detail="Your email has been verified.")


# ---------------------------------------------------------------------------
# POST /auth/forgot-password
# ---------------------------------------------------------------------------


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(body: ForgotPasswordRequest, repo: Repository = Depends(get_repository)):
    """
    Stage a password-reset token for an active account.  Delivering the link
    is left to the mailer; the token is never returned or logged.
    """
    user = repo.find_user_by_email(body.email)
    if user is not None and user.is_active:
        repo.create_reset_token(
            user.email,
            generate_token(),
            utcnow() + timedelta(minutes=settings.reset_token_ttl_minutes),
        )
        logger.info("password reset issued | user_id=%d", user.id)
    return MessageResponse(detail=_RESET_SENT)


# ---------------------------------------------------------------------------
# POST /auth/reset-password
# ---------------------------------------------------------------------------


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(body: ResetPasswordRequest, repo: Repository = Depends(get_repository)):
    """
    Consume a reset token and set the new password in one transaction.  Any
    session the user had is ended.
    """
    new_hash = hash_password(body.new_password)
    try:
        user = repo.consume_reset_token_and_update_password(body.token, new_hash)
    except TokenExpiredOrUsed:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_LINK_FAIL)
    logger.info("password reset completed | user_id=%d", user.id)
    return MessageResponse(detail="Your password has been reset successfully!")
