"""
菜单管理 ORM 模型
"""
from datetime import datetime, UTC

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey

from app.database import Base
from app.system.models.hierarchy import HierarchyMixin

MENU_TYPES = ("directory", "menu", "button")


class SysMenu(HierarchyMixin, Base):
    __tablename__ = "sys_menu"

    id = Column(Integer, primary_key=True, autoincrement=True)
    parent_id = Column(Integer, ForeignKey("sys_menu.id"), nullable=True, index=True, comment="父菜单ID")
    path = Column(String(200), default="", comment="前端路由路径")
    icon = Column(String(50), default="", comment="图标名称")
    component = Column(String(200), default="", comment="前端组件路径")
    perms = Column(String(500), default="", comment="权限标识，可为逗号分隔的多个")
    menu_type = Column(String(20), default="menu", comment="类型: directory|menu|button")
    is_visible = Column(Boolean, default=True, comment="是否在菜单中显示")
    created_at = Column(DateTime, default=lambda: datetime.now(UTC))
    updated_at = Column(DateTime, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC))

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update(
            path=self.path, icon=self.icon, component=self.component,
            perms=self.perms, menu_type=self.menu_type, is_visible=self.is_visible,
        )
        return data
