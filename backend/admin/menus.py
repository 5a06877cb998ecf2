# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Menu administration and the per-user sidebar tree.

A linked menu item is shown when the user holds ``<page>:view`` for the
last segment of its href (``/users`` → ``users:view``, ``/`` →
``dashboard:view``) and, when the item is bound to a permission, that
permission too.  A group header (no href) is shown only when at least one
of its children is.
"""

from typing import Iterable, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from admin.schemas import MenuListResponse, MenuRequest, MenuRow
from auth.schemas import SidebarItem, SidebarResponse
from core.dependencies import get_current_user, get_permission_resolver, require_permission
from core.logger import logger
from core.permissions import PermissionResolver, RoutePermission
from database import atomic, get_db
from models import Menu, Permission, User

router = APIRouter(prefix="/menus", tags=["menus"])
sidebar_router = APIRouter(prefix="/auth", tags=["auth"])

_DEFAULT_ICON = "Circle"


def view_permission_for(href: str) -> str:
    page = href.rstrip("/").rsplit("/", 1)[-1] or "dashboard"
    return f"{page}:view"


def _visible(menu: Menu, permissions: frozenset) -> bool:
    if view_permission_for(menu.href) not in permissions:
        return False
    if menu.permission is not None and menu.permission.name not in permissions:
        return False
    return True


def build_menu_tree(
    menus: Iterable[Menu],
    permissions: frozenset,
    parent_id: Optional[int] = None,
) -> List[SidebarItem]:
    """Visible items under *parent_id*, by ``order`` then ``id``."""
    menus = list(menus)
    items = []
    for menu in sorted(
        (m for m in menus if m.parent_id == parent_id), key=lambda m: (m.order, m.id)
    ):
        children = build_menu_tree(menus, permissions, menu.id)
        if menu.href:
            if not _visible(menu, permissions):
                continue
        elif not children:
            continue
        items.append(
            SidebarItem(
                id=menu.id,
                name=menu.name,
                href=menu.href,
                icon=menu.icon or _DEFAULT_ICON,
                children=children,
            )
        )
    return items


def _get_menu(db: Session, menu_id: int) -> Menu:
    menu = db.query(Menu).filter(Menu.id == menu_id).first()
    if not menu:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Menu not found")
    return menu


def _descendant_ids(db: Session, menu_id: int) -> List[int]:
    found, frontier = [], [menu_id]
    while frontier:
        frontier = [
            mid for (mid,) in db.query(Menu.id).filter(Menu.parent_id.in_(frontier)).all()
        ]
        found.extend(frontier)
    return found


def _check_links(db: Session, body: MenuRequest, menu_id: Optional[int] = None) -> None:
    if body.parent_id is not None:
        if menu_id is not None and (
            body.parent_id == menu_id or body.parent_id in _descendant_ids(db, menu_id)
        ):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A menu cannot be nested under itself.",
            )
        if not db.query(Menu.id).filter(Menu.id == body.parent_id).first():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown parent menu")
    if body.permission_id is not None:
        if not db.query(Permission.id).filter(Permission.id == body.permission_id).first():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown permission")


def _apply(menu: Menu, body: MenuRequest) -> None:
    menu.name = body.name
    menu.description = body.description or None
    menu.href = body.href or None
    menu.icon = body.icon or None
    menu.order = body.order
    menu.parent_id = body.parent_id
    menu.permission_id = body.permission_id


# ---------------------------------------------------------------------------
# GET /auth/me/menus  – the caller's sidebar
# ---------------------------------------------------------------------------


@sidebar_router.get("/me/menus", response_model=SidebarResponse)
def my_menus(
    current_user: User = Depends(get_current_user),
    resolver: PermissionResolver = Depends(get_permission_resolver),
    db: Session = Depends(get_db),
):
    menus = db.query(Menu).order_by(Menu.order, Menu.id).all()
    return SidebarResponse(items=build_menu_tree(menus, resolver.resolve(current_user.id)))


# ---------------------------------------------------------------------------
# /menus CRUD
# ---------------------------------------------------------------------------


@router.get("", response_model=MenuListResponse)
def list_menus(
    _: User = Depends(require_permission(RoutePermission.MENUS_VIEW)),
    db: Session = Depends(get_db),
):
    return MenuListResponse(menus=db.query(Menu).order_by(Menu.order, Menu.id).all())


@router.post("", response_model=MenuRow, status_code=status.HTTP_201_CREATED)
def create_menu(
    body: MenuRequest,
    admin: User = Depends(require_permission(RoutePermission.MENUS_CREATE)),
    db: Session = Depends(get_db),
):
    _check_links(db, body)
    menu = Menu()
    _apply(menu, body)
    with atomic(db):
        db.add(menu)
    logger.info("menu created | admin_id=%d menu_id=%d name=%s", admin.id, menu.id, menu.name)
    db.refresh(menu)
    return menu


@router.put("/{menu_id}", response_model=MenuRow)
def update_menu(
    menu_id: int,
    body: MenuRequest,
    admin: User = Depends(require_permission(RoutePermission.MENUS_UPDATE)),
    db: Session = Depends(get_db),
):
    menu = _get_menu(db, menu_id)
    _check_links(db, body, menu.id)
    with atomic(db):
        _apply(menu, body)
    logger.info("menu updated | admin_id=%d menu_id=%d", admin.id, menu.id)
    db.refresh(menu)
    return menu


@router.delete("/{menu_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_menu(
    menu_id: int,
    admin: User = Depends(require_permission(RoutePermission.MENUS_DELETE)),
    db: Session = Depends(get_db),
):
    """Delete a menu and every item nested under it."""
    menu = _get_menu(db, menu_id)
    doomed = _descendant_ids(db, menu.id)
    with atomic(db):
        if doomed:
            db.query(Menu).filter(Menu.id.in_(doomed)).delete(synchronize_session="fetch")
        db.delete(menu)
    logger.info("menu deleted | admin_id=%d menu_id=%d descendants=%d", admin.id, menu_id, len(doomed))
