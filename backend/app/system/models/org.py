"""
组织机构 ORM 模型 — 部门树

部门通过 parent_id 形成树，ancestors 保存祖级路径用于子树查询。
"""
from datetime import datetime, UTC

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey

from app.database import Base
from app.system.models.hierarchy import HierarchyMixin


class SysDepartment(HierarchyMixin, Base):
    """部门表 — 支持树形结构"""
    __tablename__ = "sys_department"

    id = Column(Integer, primary_key=True, index=True)
    parent_id = Column(Integer, ForeignKey("sys_department.id"), nullable=True, index=True)
    leader = Column(String(50), default="")
    phone = Column(String(20), default="")
    email = Column(String(100), default="")
    created_at = Column(DateTime, default=lambda: datetime.now(UTC))
    updated_at = Column(DateTime, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC))

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update(
            leader=self.leader, phone=self.phone, email=self.email,
            created_at=self.created_at, updated_at=self.updated_at,
        )
        return data
