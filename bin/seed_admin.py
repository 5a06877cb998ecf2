# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Bootstrap script – creates the permission catalogue, the ``admin`` role,
the default sidebar menus and the first admin user.

Run after the initial migration (safe to re-run; existing rows are kept):
    python bin/seed_admin.py

The admin account is read from FIRST_ADMIN_EMAIL and FIRST_ADMIN_PASSWORD in
etc/app.conf.  When either is blank only the catalogue, role and menus are
created.
"""

import sys
import os

# ---------------------------------------------------------------------------
# Path setup so backend modules are importable
# ---------------------------------------------------------------------------
# bin/seed_admin.py  →  ../  →  project root
_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_BACKEND_DIR  = os.path.join(_PROJECT_ROOT, "backend")
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

from core.config import settings                               # noqa: E402
from core.permissions import RoutePermission                   # noqa: E402
from core.security import generate_uuid, hash_password         # noqa: E402
from database import SessionLocal, atomic                      # noqa: E402
from models import ADMIN_ROLE, Menu, Permission, Role, RolePermission, User, UserRole  # noqa: E402
from repository import utcnow                                  # noqa: E402

# (name, href, icon, order, children)
DEFAULT_MENUS = [
    ("Dashboard", "/", "Home", 0, []),
    ("User Management", None, "Users", 10, [
        ("Users", "/users", "Circle", 0),
        ("Roles", "/roles", "Circle", 1),
        ("Permissions", "/permissions", "Circle", 2),
        ("User Roles", "/user-roles", "Circle", 3),
    ]),
    ("System", None, "Settings", 20, [
        ("Menus", "/menus", "Circle", 0),
        ("Login History", "/login-history", "Circle", 1),
    ]),
]


def _seed_permissions(db) -> list:
    existing = {p.name: p for p in db.query(Permission).all()}
    for perm in RoutePermission:
        if perm.value not in existing:
            permission = Permission(name=perm.value, description=f"Route permission {perm.value}")
            db.add(permission)
            existing[perm.value] = permission
    db.flush()
    return list(existing.values())


def _seed_admin_role(db, permissions: list) -> Role:
    role = db.query(Role).filter(Role.name == ADMIN_ROLE).first()
    if role is None:
        role = Role(name=ADMIN_ROLE, description="Full access")
        db.add(role)
        db.flush()
    granted = {
        pid for (pid,) in db.query(RolePermission.permission_id).filter(RolePermission.role_id == role.id).all()
    }
    db.add_all(
        RolePermission(role_id=role.id, permission_id=p.id) for p in permissions if p.id not in granted
    )
    return role


def _seed_menus(db) -> int:
    if db.query(Menu).count():
        return 0
    created = 0
    for name, href, icon, order, children in DEFAULT_MENUS:
        parent = Menu(name=name, href=href, icon=icon, order=order)
        db.add(parent)
        db.flush()
        created += 1
        for child_name, child_href, child_icon, child_order in children:
            db.add(Menu(name=child_name, href=child_href, icon=child_icon,
                        order=child_order, parent_id=parent.id))
            created += 1
    return created


def _seed_first_admin(db, role: Role):
    if not settings.first_admin_email or not settings.first_admin_password:
        print("[seed_admin] FIRST_ADMIN_EMAIL or FIRST_ADMIN_PASSWORD not set in etc/app.conf – no admin user.")
        return None

    admin = db.query(User).filter(User.email == settings.first_admin_email).first()
    if admin is None:
        admin = User(
            uuid=generate_uuid(),
            email=settings.first_admin_email,
            password_hash=hash_password(settings.first_admin_password),
            first_name="Admin",
            last_name="",
            avatar_url="/images/avatars/admin.jpg",
            is_active=True,
            email_verified_at=utcnow(),
        )
        db.add(admin)
        db.flush()
        print(f"[seed_admin] Admin '{settings.first_admin_email}' created.")
    else:
        print(f"[seed_admin] Admin '{settings.first_admin_email}' already exists – skipping.")

    held = db.query(UserRole).filter(UserRole.user_id == admin.id, UserRole.role_id == role.id).first()
    if held is None:
        db.add(UserRole(user_id=admin.id, role_id=role.id))
    return admin


def seed(db=None):
    """Create whatever is missing, in one transaction."""
    own_session = db is None
    if own_session:
        db = SessionLocal()
    try:
        with atomic(db):
            permissions = _seed_permissions(db)
            role = _seed_admin_role(db, permissions)
            menus = _seed_menus(db)
            admin = _seed_first_admin(db, role)
        print(f"[seed_admin] {len(permissions)} permissions, role '{role.name}', {menus} new menus.")
        return admin
    finally:
        if own_session:
            db.close()


if __name__ == "__main__":
    seed()
