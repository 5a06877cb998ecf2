# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
User administration – list, create, update (with role sync) and the
active-status toggle.

Guards
------
* Nobody can change their own active status or role set (prevents
  accidental self-lockout).
* The account named by ``SUPER_ADMIN_EMAIL`` can never be deactivated.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from admin.schemas import UserCreateRequest, UserListResponse, UserRow, UserUpdateRequest
from core.config import settings
from core.dependencies import require_permission
from core.logger import logger
from core.permissions import RoutePermission
from core.security import generate_uuid, hash_password
from database import atomic, get_db
from models import Role, User, UserRole

router = APIRouter(prefix="/users", tags=["users"])

_EMAIL_TAKEN = "A user with this email already exists."


def load_roles(db: Session, role_ids: list[int]) -> list[Role]:
    """Load the roles for *role_ids*; 400 if any id is unknown."""
    wanted = set(role_ids)
    if not wanted:
        return []
    roles = db.query(Role).filter(Role.id.in_(sorted(wanted))).all()
    missing = wanted - {role.id for role in roles}
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown role id(s): {sorted(missing)}",
        )
    return roles


def replace_user_roles(db: Session, user: User, roles: list[Role]) -> None:
    """Delete every membership of *user* and insert *roles*.  Caller commits."""
    db.expire(user, ["user_roles"])
    db.query(UserRole).filter(UserRole.user_id == user.id).delete()
    db.flush()
    db.add_all(UserRole(user_id=user.id, role_id=role.id) for role in roles)


def _is_super_admin(user: User) -> bool:
    return bool(settings.super_admin_email) and user.email == settings.super_admin_email


def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


# ---------------------------------------------------------------------------
# GET /users  – list all users
# ---------------------------------------------------------------------------


@router.get("", response_model=UserListResponse)
def list_users(
    _: User = Depends(require_permission(RoutePermission.USERS_VIEW)),
    db: Session = Depends(get_db),
):
    """Return every user with their roles (no password data – handled by the schema)."""
    users = (
        db.query(User)
        .options(selectinload(User.user_roles).selectinload(UserRole.role))
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )
    return UserListResponse(users=users)


# ---------------------------------------------------------------------------
# POST /users  – create a new user
# ---------------------------------------------------------------------------


@router.post("", response_model=UserRow, status_code=status.HTTP_201_CREATED)
def create_user(
    body: UserCreateRequest,
    admin: User = Depends(require_permission(RoutePermission.USERS_CREATE)),
    db: Session = Depends(get_db),
):
    if db.query(User).filter(User.email == body.email).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_EMAIL_TAKEN)

    roles = load_roles(db, body.role_ids)
    try:
        with atomic(db):
            user = User(
                uuid=generate_uuid(),
                email=body.email,
                password_hash=hash_password(body.password),
                first_name=body.first_name,
                last_name=body.last_name,
                phone=body.phone,
                date_of_birth=body.date_of_birth,
                gender=body.gender,
                avatar_url=body.avatar_url,
                is_active=body.is_active,
            )
            db.add(user)
            db.flush()  # get user.id before commit
            db.add_all(UserRole(user_id=user.id, role_id=role.id) for role in roles)
    except IntegrityError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_EMAIL_TAKEN)

    logger.info("user created | admin_id=%d user_id=%d roles=%s", admin.id, user.id, body.role_ids)
    db.refresh(user)
    return user


# ---------------------------------------------------------------------------
# PUT /users/{id}  – update profile fields, active flag and role set
# ---------------------------------------------------------------------------


@router.put("/{user_id}", response_model=UserRow)
def update_user(
    user_id: int,
    body: UserUpdateRequest,
    admin: User = Depends(require_permission(RoutePermission.USERS_UPDATE)),
    db: Session = Depends(get_db),
):
    """
    Overwrite a user's fields and replace their role memberships in one
    transaction.  A blank password keeps the current one.
    """
    target = _get_user(db, user_id)

    if target.id == admin.id:
        current_role_ids = {ur.role_id for ur in target.user_roles}
        if body.is_active != target.is_active or set(body.role_ids) != current_role_ids:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Users cannot change their own active status or roles.",
            )

    if _is_super_admin(target) and not body.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot deactivate super admin")

    owner = db.query(User).filter(User.email == body.email).first()
    if owner is not None and owner.id != target.id:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_EMAIL_TAKEN)

    roles = load_roles(db, body.role_ids)
    try:
        with atomic(db):
            target.email = body.email
            target.first_name = body.first_name
            target.last_name = body.last_name
            target.phone = body.phone
            target.date_of_birth = body.date_of_birth
            target.gender = body.gender
            target.avatar_url = body.avatar_url
            target.is_active = body.is_active
            if body.password:
                target.password_hash = hash_password(body.password)
            replace_user_roles(db, target, roles)
    except IntegrityError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_EMAIL_TAKEN)

    logger.info("user updated | admin_id=%d user_id=%d roles=%s", admin.id, target.id, body.role_ids)
    db.refresh(target)
    return target


# ---------------------------------------------------------------------------
# PUT /users/{id}/toggle-status  – flip the active flag
# ---------------------------------------------------------------------------


@router.put("/{user_id}/toggle-status", response_model=UserRow)
def toggle_user_status(
    user_id: int,
    admin: User = Depends(require_permission(RoutePermission.USERS_UPDATE)),
    db: Session = Depends(get_db),
):
    """
    Disable an active account or re-enable a disabled one.  A disabled user's
    session stops resolving immediately.
    """
    if user_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot change your own active status.",
        )

    target = _get_user(db, user_id)
    if _is_super_admin(target) and target.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot deactivate super admin")

    target.is_active = not target.is_active
    db.commit()
    logger.info("user %s | admin_id=%d user_id=%d",
                "enabled" if target.is_active else "disabled", admin.id, target.id)
    db.refresh(target)
    return target
