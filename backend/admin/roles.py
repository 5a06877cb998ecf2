# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Role administration.

A role update renames the role and replaces its whole permission set
(delete-all-then-reinsert) inside one transaction, so a concurrent
permission lookup sees either the old bundle or the new one, never a role
that is half-synced.  The ``admin`` role can be edited but not renamed or
deleted.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from admin.schemas import PermissionRef, RoleListResponse, RoleRequest, RoleRow
from core.dependencies import require_permission
from core.logger import logger
from core.permissions import RoutePermission
from database import atomic, get_db
from models import ADMIN_ROLE, Permission, Role, RolePermission, User

router = APIRouter(prefix="/roles", tags=["roles"])

_NAME_TAKEN = "Role name already exists"


def _row(role: Role) -> RoleRow:
    return RoleRow(
        id=role.id,
        name=role.name,
        description=role.description,
        created_at=role.created_at,
        permissions=sorted(
            (PermissionRef.model_validate(p) for p in role.permissions),
            key=lambda p: p.name,
        ),
        user_count=len(role.user_roles),
    )


def load_permissions(db: Session, permission_ids: list[int]) -> list[Permission]:
    """Load the permissions for *permission_ids*; 400 if any id is unknown."""
    wanted = set(permission_ids)
    if not wanted:
        return []
    permissions = db.query(Permission).filter(Permission.id.in_(sorted(wanted))).all()
    missing = wanted - {p.id for p in permissions}
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown permission id(s): {sorted(missing)}",
        )
    return permissions


def replace_role_permissions(db: Session, role: Role, permissions: list[Permission]) -> None:
    """Delete the role's whole bundle and insert *permissions*.  Caller commits."""
    db.expire(role, ["role_permissions"])
    db.query(RolePermission).filter(RolePermission.role_id == role.id).delete()
    db.flush()
    db.add_all(RolePermission(role_id=role.id, permission_id=p.id) for p in permissions)


def _get_role(db: Session, role_id: int) -> Role:
    role = db.query(Role).filter(Role.id == role_id).first()
    if not role:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")
    return role


# ---------------------------------------------------------------------------
# GET /roles
# ---------------------------------------------------------------------------


@router.get("", response_model=RoleListResponse)
def list_roles(
    _: User = Depends(require_permission(RoutePermission.ROLES_VIEW)),
    db: Session = Depends(get_db),
):
    roles = (
        db.query(Role)
        .options(
            selectinload(Role.role_permissions).selectinload(RolePermission.permission),
            selectinload(Role.user_roles),
        )
        .order_by(Role.name)
        .all()
    )
    return RoleListResponse(roles=[_row(role) for role in roles])


# ---------------------------------------------------------------------------
# POST /roles
# ---------------------------------------------------------------------------


@router.post("", response_model=RoleRow, status_code=status.HTTP_201_CREATED)
def create_role(
    body: RoleRequest,
    admin: User = Depends(require_permission(RoutePermission.ROLES_CREATE)),
    db: Session = Depends(get_db),
):
    if db.query(Role).filter(Role.name == body.name).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_NAME_TAKEN)

    permissions = load_permissions(db, body.permission_ids)
    try:
        with atomic(db):
            role = Role(name=body.name, description=body.description or None)
            db.add(role)
            db.flush()
            db.add_all(RolePermission(role_id=role.id, permission_id=p.id) for p in permissions)
    except IntegrityError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_NAME_TAKEN)

    logger.info("role created | admin_id=%d role_id=%d name=%s", admin.id, role.id, role.name)
    db.refresh(role)
    return _row(role)


# ---------------------------------------------------------------------------
# PUT /roles/{id}
# ---------------------------------------------------------------------------


@router.put("/{role_id}", response_model=RoleRow)
def update_role(
    role_id: int,
    body: RoleRequest,
    admin: User = Depends(require_permission(RoutePermission.ROLES_UPDATE)),
    db: Session = Depends(get_db),
):
    role = _get_role(db, role_id)

    if role.name == ADMIN_ROLE and body.name != ADMIN_ROLE:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot rename admin role")

    clash = db.query(Role).filter(Role.name == body.name, Role.id != role.id).first()
    if clash:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_NAME_TAKEN)

    permissions = load_permissions(db, body.permission_ids)
    try:
        with atomic(db):
            role.name = body.name
            role.description = body.description or None
            replace_role_permissions(db, role, permissions)
    except IntegrityError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_NAME_TAKEN)

    logger.info(
        "role updated | admin_id=%d role_id=%d name=%s permissions=%d",
        admin.id, role.id, role.name, len(permissions),
    )
    db.refresh(role)
    return _row(role)


# ---------------------------------------------------------------------------
# DELETE /roles/{id}
# ---------------------------------------------------------------------------


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(
    role_id: int,
    admin: User = Depends(require_permission(RoutePermission.ROLES_DELETE)),
    db: Session = Depends(get_db),
):
    """Delete a role together with its memberships and permission links."""
    role = _get_role(db, role_id)
    if role.name == ADMIN_ROLE:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot delete admin role")

    with atomic(db):
        db.delete(role)
    logger.info("role deleted | admin_id=%d role_id=%d", admin.id, role_id)
