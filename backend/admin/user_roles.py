# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Role assignment – who holds which role."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, joinedload

from admin.schemas import AssignRolesRequest, UserRoleListResponse, UserRoleRow
from admin.users import load_roles
from core.dependencies import require_permission
from core.logger import logger
from core.permissions import RoutePermission
from database import atomic, get_db
from models import User, UserRole

router = APIRouter(prefix="/user-roles", tags=["user-roles"])


@router.get("", response_model=UserRoleListResponse)
def list_assignments(
    _: User = Depends(require_permission(RoutePermission.USER_ROLES_VIEW)),
    db: Session = Depends(get_db),
):
    """Every (user, role) membership, newest first."""
    rows = (
        db.query(UserRole)
        .options(joinedload(UserRole.user), joinedload(UserRole.role))
        .order_by(UserRole.created_at.desc(), UserRole.id.desc())
        .all()
    )
    return UserRoleListResponse(
        assignments=[
            UserRoleRow(
                user_id=row.user_id,
                user_email=row.user.email,
                user_name=row.user.full_name,
                role_id=row.role_id,
                role_name=row.role.name,
                created_at=row.created_at,
            )
            for row in rows
        ]
    )


@router.put("/{user_id}", response_model=UserRoleListResponse)
def assign_roles(
    user_id: int,
    body: AssignRolesRequest,
    admin: User = Depends(require_permission(RoutePermission.USER_ROLES_ASSIGN)),
    db: Session = Depends(get_db),
):
    """
    Make *body.role_ids* the user's exact role set.  Only the difference is
    written: memberships to drop are deleted, new ones inserted, untouched
    ones keep their ``created_at``.  One transaction.
    """
    target = db.query(User).filter(User.id == user_id).first()
    if not target:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if target.id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Users cannot change their own roles.",
        )

    wanted = {role.id for role in load_roles(db, body.role_ids)}
    existing = {
        role_id for (role_id,) in db.query(UserRole.role_id).filter(UserRole.user_id == user_id).all()
    }
    to_add = wanted - existing
    to_remove = existing - wanted

    with atomic(db):
        db.expire(target, ["user_roles"])
        if to_remove:
            db.query(UserRole).filter(
                UserRole.user_id == user_id, UserRole.role_id.in_(sorted(to_remove))
            ).delete(synchronize_session="fetch")
        db.add_all(UserRole(user_id=user_id, role_id=role_id) for role_id in sorted(to_add))

    logger.info(
        "roles assigned | admin_id=%d user_id=%d added=%s removed=%s",
        admin.id, user_id, sorted(to_add), sorted(to_remove),
    )

    rows = (
        db.query(UserRole)
        .options(joinedload(UserRole.role))
        .filter(UserRole.user_id == user_id)
        .order_by(UserRole.role_id)
        .all()
    )
    return UserRoleListResponse(
        assignments=[
            UserRoleRow(
                user_id=user_id,
                user_email=target.email,
                user_name=target.full_name,
                role_id=row.role_id,
                role_name=row.role.name,
                created_at=row.created_at,
            )
            for row in rows
        ]
    )
