"""
树形节点公共字段 — 部门与菜单共用

ancestors 为祖级路径（逗号分隔的祖先 ID，根在前，根节点为 "0"），
只能由 AncestorMaintainer 在新增/移动节点时写入，对外只读。
"""
from sqlalchemy import Boolean, Column, Integer, String
from sqlalchemy.ext.hybrid import hybrid_property

ROOT_ANCESTORS = "0"


class HierarchyMixin:
    name = Column(String(100), nullable=False)
    sort_order = Column(Integer, default=0)
    is_active = Column(Boolean, default=True, nullable=False)
    _ancestors = Column("ancestors", String(1000), nullable=False, default=ROOT_ANCESTORS)

    @hybrid_property
    def ancestors(self) -> str:
        return self._ancestors

    def ancestor_path_contains(self, node_id: int) -> bool:
        return str(node_id) in (self._ancestors or "").split(",")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "parent_id": self.parent_id,
            "name": self.name,
            "ancestors": self._ancestors,
            "sort_order": self.sort_order,
            "is_active": self.is_active,
        }
