"""
系统用户 ORM 模型
"""
from datetime import datetime, UTC

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey

from app.database import Base


class SysUser(Base):
    """用户表 — 每个用户归属一个部门（可为空）"""
    __tablename__ = "sys_user"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    nickname = Column(String(50), default="")
    password_hash = Column(String(200), nullable=False)
    dept_id = Column(Integer, ForeignKey("sys_department.id"), nullable=True, index=True)
    is_super_admin = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC))
    updated_at = Column(DateTime, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC))
