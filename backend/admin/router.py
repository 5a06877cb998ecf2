# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Administration endpoints.

One router per resource, each guarded by ``require_permission`` with the
resource's ``view`` / ``create`` / ``update`` / ``delete`` / ``assign``
permission.  This module only stitches them together for ``main``.
"""

from fastapi import APIRouter

from admin import login_history, menus, permissions, roles, user_roles, users

router = APIRouter()
router.include_router(users.router)
router.include_router(roles.router)
router.include_router(permissions.router)
router.include_router(user_roles.router)
router.include_router(menus.router)
router.include_router(menus.sidebar_router)
router.include_router(login_history.router)
