"""
系统管理 ORM 模型
"""
from app.system.models.rbac import SysRole, SysRoleDept, SysRoleMenu, SysUserRole
from app.system.models.menu import SysMenu
from app.system.models.org import SysDepartment
from app.system.models.user import SysUser

__all__ = [
    "SysRole", "SysRoleDept", "SysRoleMenu", "SysUserRole",
    "SysMenu",
    "SysDepartment",
    "SysUser",
]
