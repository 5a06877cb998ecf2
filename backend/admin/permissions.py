# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Permission administration – the ``resource:action`` catalogue."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from admin.schemas import (
    BulkCreateResponse,
    PermissionBulkRequest,
    PermissionListResponse,
    PermissionRequest,
    PermissionRow,
)
from core.dependencies import require_permission
from core.logger import logger
from core.permissions import RoutePermission
from database import atomic, get_db
from models import Permission, RolePermission, User

router = APIRouter(prefix="/permissions", tags=["permissions"])

_NAME_TAKEN = "Permission name already exists"


def _get_permission(db: Session, permission_id: int) -> Permission:
    permission = db.query(Permission).filter(Permission.id == permission_id).first()
    if not permission:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Permission not found")
    return permission


@router.get("", response_model=PermissionListResponse)
def list_permissions(
    _: User = Depends(require_permission(RoutePermission.PERMISSIONS_VIEW)),
    db: Session = Depends(get_db),
):
    """Every permission, by name, with the roles that grant it."""
    permissions = (
        db.query(Permission)
        .options(selectinload(Permission.role_permissions).selectinload(RolePermission.role))
        .order_by(Permission.name)
        .all()
    )
    return PermissionListResponse(permissions=permissions)


@router.post("", response_model=PermissionRow, status_code=status.HTTP_201_CREATED)
def create_permission(
    body: PermissionRequest,
    admin: User = Depends(require_permission(RoutePermission.PERMISSIONS_CREATE)),
    db: Session = Depends(get_db),
):
    if db.query(Permission).filter(Permission.name == body.name).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_NAME_TAKEN)

    permission = Permission(name=body.name, description=body.description or None)
    db.add(permission)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_NAME_TAKEN)

    logger.info("permission created | admin_id=%d name=%s", admin.id, permission.name)
    db.refresh(permission)
    return permission


@router.post("/bulk", response_model=BulkCreateResponse, status_code=status.HTTP_201_CREATED)
def bulk_create_permissions(
    body: PermissionBulkRequest,
    admin: User = Depends(require_permission(RoutePermission.PERMISSIONS_CREATE)),
    db: Session = Depends(get_db),
):
    """
    Create many permissions at once.  Each item's ``name`` is the resource and
    ``type`` the action (``users`` + ``export`` → ``users:export``).  Names that
    already exist are skipped rather than failing the batch.
    """
    try:
        wanted = {item.full_name: item.description for item in body.permissions}
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    existing = {
        name for (name,) in db.query(Permission.name).filter(Permission.name.in_(list(wanted))).all()
    }
    created = sorted(set(wanted) - existing)
    try:
        with atomic(db):
            db.add_all(Permission(name=name, description=wanted[name] or None) for name in created)
    except IntegrityError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_NAME_TAKEN)

    logger.info("permissions bulk-created | admin_id=%d created=%d skipped=%d",
                admin.id, len(created), len(existing))
    return BulkCreateResponse(created=created, skipped=sorted(existing))


@router.put("/{permission_id}", response_model=PermissionRow)
def update_permission(
    permission_id: int,
    body: PermissionRequest,
    admin: User = Depends(require_permission(RoutePermission.PERMISSIONS_UPDATE)),
    db: Session = Depends(get_db),
):
    permission = _get_permission(db, permission_id)
    clash = (
        db.query(Permission)
        .filter(Permission.name == body.name, Permission.id != permission.id)
        .first()
    )
    if clash:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_NAME_TAKEN)

    permission.name = body.name
    permission.description = body.description or None
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_NAME_TAKEN)
    logger.info("permission updated | admin_id=%d permission_id=%d", admin.id, permission.id)
    db.refresh(permission)
    return permission


@router.delete("/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_permission(
    permission_id: int,
    admin: User = Depends(require_permission(RoutePermission.PERMISSIONS_DELETE)),
    db: Session = Depends(get_db),
):
    """Delete a permission; every role that granted it loses it."""
    permission = _get_permission(db, permission_id)
    with atomic(db):
        db.delete(permission)
    logger.info("permission deleted | admin_id=%d permission_id=%d", admin.id, permission_id)
