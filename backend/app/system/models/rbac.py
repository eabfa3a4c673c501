"""
RBAC ORM 模型 — 角色、角色-部门授权、角色-菜单授权、用户-角色映射
"""
from datetime import datetime, UTC

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey

from app.database import Base


class SysRole(Base):
    """角色表"""
    __tablename__ = "sys_role"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), default="")
    data_scope = Column(String(20), default="ALL")  # ALL, CUSTOM, DEPT, DEPT_AND_CHILD, SELF
    # 树选择是否父子联动（严格模式下已授权的父节点不回显）
    dept_check_strictly = Column(Boolean, default=True)
    menu_check_strictly = Column(Boolean, default=True)
    sort_order = Column(Integer, default=0)
    is_system = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC))
    updated_at = Column(DateTime, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC))


class SysRoleDept(Base):
    """角色-部门授权表（CUSTOM 数据范围）"""
    __tablename__ = "sys_role_dept"

    role_id = Column(Integer, ForeignKey("sys_role.id", ondelete="CASCADE"), primary_key=True)
    dept_id = Column(Integer, ForeignKey("sys_department.id", ondelete="CASCADE"), primary_key=True)


class SysRoleMenu(Base):
    """角色-菜单授权表"""
    __tablename__ = "sys_role_menu"

    role_id = Column(Integer, ForeignKey("sys_role.id", ondelete="CASCADE"), primary_key=True)
    menu_id = Column(Integer, ForeignKey("sys_menu.id", ondelete="CASCADE"), primary_key=True)


class SysUserRole(Base):
    """用户-角色映射表"""
    __tablename__ = "sys_user_role"

    user_id = Column(Integer, ForeignKey("sys_user.id", ondelete="CASCADE"), primary_key=True)
    role_id = Column(Integer, ForeignKey("sys_role.id", ondelete="CASCADE"), primary_key=True)
