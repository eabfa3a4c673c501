"""
菜单管理 Service
"""
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from core.security.context import Principal
from core.security.errors import NotFoundError, ValidationError
from app.system.models.menu import MENU_TYPES, SysMenu
from app.system.models.rbac import SysRoleMenu
from app.system.services.ancestor_service import AncestorMaintainer
from app.system.services.tree_builder import build_tree, build_tree_select, prune_empty


class MenuService:
    """菜单管理服务"""

    def __init__(self, db: Session):
        self.db = db
        self.maintainer = AncestorMaintainer(db, SysMenu, label="菜单")

    def get_menus(self, include_inactive: bool = False, principal: Optional[Principal] = None) -> List[SysMenu]:
        """菜单列表；非超级管理员只返回其启用角色已授权的菜单"""
        q = self.db.query(SysMenu)
        if not include_inactive:
            q = q.filter(SysMenu.is_active == True)
        if principal is not None and not principal.is_super_admin:
            role_ids = [r.id for r in principal.active_roles]
            if not role_ids:
                return []
            granted = select(SysRoleMenu.menu_id).where(SysRoleMenu.role_id.in_(role_ids))
            q = q.filter(SysMenu.id.in_(granted))
        return q.order_by(SysMenu.parent_id, SysMenu.sort_order, SysMenu.id).all()

    def get_menu_by_id(self, menu_id: int) -> Optional[SysMenu]:
        return self.db.query(SysMenu).filter(SysMenu.id == menu_id).first()

    def _require_menu(self, menu_id: int) -> SysMenu:
        menu = self.get_menu_by_id(menu_id)
        if not menu:
            raise NotFoundError(f"菜单 ID {menu_id} 不存在", "sys_menu", menu_id)
        return menu

    def _check_unique_name(self, name: str, parent_id: Optional[int], exclude_id: Optional[int] = None) -> None:
        q = self.db.query(SysMenu).filter(SysMenu.name == name)
        if parent_id:
            q = q.filter(SysMenu.parent_id == parent_id)
        else:
            q = q.filter(SysMenu.parent_id.is_(None))
        if exclude_id is not None:
            q = q.filter(SysMenu.id != exclude_id)
        if q.first():
            raise ValidationError(f"菜单名称 '{name}' 已存在")

    def create_menu(self, name: str, menu_type: str = "menu",
                    parent_id: Optional[int] = None, path: str = "",
                    icon: str = "", component: str = "",
                    perms: str = "", is_visible: bool = True,
                    is_active: bool = True, sort_order: int = 0) -> SysMenu:
        if menu_type not in MENU_TYPES:
            raise ValidationError(f"无效的菜单类型 '{menu_type}'")
        self._check_unique_name(name, parent_id)

        menu = SysMenu(
            name=name, menu_type=menu_type,
            parent_id=parent_id or None, path=path, icon=icon,
            component=component, perms=perms,
            is_visible=is_visible, is_active=is_active, sort_order=sort_order,
        )
        return self.maintainer.insert(menu, commit=False)

    def update_menu(self, menu_id: int, **kwargs) -> SysMenu:
        menu = self._require_menu(menu_id)

        new_parent_id = menu.parent_id
        parent_changed = False
        if "parent_id" in kwargs:
            new_parent_id = kwargs.pop("parent_id") or None
            parent_changed = new_parent_id != menu.parent_id
        if new_parent_id == menu_id:
            raise ValidationError("上级菜单不能是自己")
        if "menu_type" in kwargs and kwargs["menu_type"] not in MENU_TYPES:
            raise ValidationError(f"无效的菜单类型 '{kwargs['menu_type']}'")

        name = kwargs.get("name", menu.name)
        if name != menu.name or parent_changed:
            self._check_unique_name(name, new_parent_id, exclude_id=menu_id)

        for key, value in kwargs.items():
            if key in ("id", "ancestors", "_ancestors"):
                continue
            if hasattr(menu, key):
                setattr(menu, key, value)

        if parent_changed:
            self.maintainer.reparent(menu_id, new_parent_id, commit=False)
        elif menu.is_active:
            self.maintainer.reactivate_ancestors(menu)

        self.db.flush()
        return menu

    def delete_menu(self, menu_id: int) -> None:
        menu = self._require_menu(menu_id)

        # Check for children
        child_count = self.db.query(SysMenu).filter(SysMenu.parent_id == menu_id).count()
        if child_count > 0:
            raise ValidationError(f"菜单 '{menu.name}' 有 {child_count} 个子菜单，请先删除子菜单")
        grant_count = self.db.query(SysRoleMenu).filter(SysRoleMenu.menu_id == menu_id).count()
        if grant_count > 0:
            raise ValidationError(f"菜单 '{menu.name}' 已分配给 {grant_count} 个角色，不允许删除")

        self.db.delete(menu)
        self.db.flush()

    def get_menu_tree(self, include_buttons: bool = False, principal: Optional[Principal] = None) -> List[Dict]:
        """Build full menu tree for admin"""
        menus = self.get_menus(principal=principal)
        if not include_buttons:
            menus = [m for m in menus if m.menu_type != "button"]
        return build_tree(menus)

    def get_menu_tree_select(self, principal: Optional[Principal] = None) -> List[Dict]:
        return build_tree_select(self.get_menus(include_inactive=True, principal=principal))

    def get_user_menu_tree(self, principal: Principal) -> List[Dict]:
        """Build navigation tree for a principal: visible, non-button, granted menus"""
        menus = [
            m for m in self.get_menus(principal=principal)
            if m.is_visible and m.menu_type != "button"
        ]
        tree = build_tree(menus)

        # Remove empty directories
        return prune_empty(tree, lambda node: node["menu_type"] == "directory")
