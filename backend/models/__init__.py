"""
Import every ORM model so that ``Base.metadata`` knows about all tables and
relationship() strings resolve no matter which model is imported first.
"""

from models.user import User
from models.role import ADMIN_ROLE, Role, RolePermission, UserRole
from models.permission import Permission
from models.login_history import LoginHistory
from models.tokens import EmailVerificationToken, PasswordResetToken
from models.menu import Menu

__all__ = [
    "ADMIN_ROLE",
    "EmailVerificationToken",
    "LoginHistory",
    "Menu",
    "PasswordResetToken",
    "Permission",
    "Role",
    "RolePermission",
    "User",
    "UserRole",
]
