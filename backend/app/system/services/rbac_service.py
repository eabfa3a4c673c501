"""
RBAC Service — 角色管理 + 角色授权（菜单 / 自定义数据范围部门）+ 用户角色分配

写操作只 flush，由路由层统一 commit 并同步失效权限缓存。
"""
from typing import Dict, List, Optional, Set

from sqlalchemy.orm import Session

from core.security.context import Principal
from core.security.data_scope import DataScope
from core.security.errors import NotFoundError, ValidationError
from app.system.models.menu import SysMenu
from app.system.models.org import SysDepartment
from app.system.models.rbac import SysRole, SysRoleDept, SysRoleMenu, SysUserRole
from app.system.models.user import SysUser
from app.system.services.data_scope_resolver import DeptDataScopeResolver
from app.system.services.tree_builder import build_tree_select


def _check_data_scope(value: str) -> str:
    scope = DataScope.parse(value)
    if scope is None:
        raise ValidationError(f"无效的数据范围 '{value}'")
    return scope.value


def strict_selection(nodes) -> List[int]:
    """严格模式回显：去掉本身也有已授权子节点的父节点"""
    parents = {n.parent_id for n in nodes if n.parent_id}
    return [n.id for n in nodes if n.id not in parents]


class RoleService:
    """角色管理服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_roles(self, principal: Optional[Principal] = None,
                  include_inactive: bool = False) -> List[SysRole]:
        """角色列表，传入 principal 时按其数据范围过滤"""
        q = self.db.query(SysRole)
        if principal is not None:
            clause = DeptDataScopeResolver(self.db).role_scope_clause(principal)
            if clause is not None:
                q = q.filter(clause)
        if not include_inactive:
            q = q.filter(SysRole.is_active == True)
        return q.order_by(SysRole.sort_order, SysRole.id).all()

    def get_role_by_id(self, role_id: int) -> Optional[SysRole]:
        return self.db.query(SysRole).filter(SysRole.id == role_id).first()

    def get_role_by_code(self, code: str) -> Optional[SysRole]:
        return self.db.query(SysRole).filter(SysRole.code == code).first()

    def _require_role(self, role_id: int) -> SysRole:
        role = self.get_role_by_id(role_id)
        if not role:
            raise NotFoundError(f"角色 ID {role_id} 不存在", "sys_role", role_id)
        return role

    def create_role(self, code: str, name: str, description: str = "",
                    data_scope: str = "ALL", sort_order: int = 0,
                    dept_check_strictly: bool = True, menu_check_strictly: bool = True,
                    menu_ids: Optional[List[int]] = None) -> SysRole:
        existing = self.get_role_by_code(code)
        if existing:
            raise ValidationError(f"角色编码 '{code}' 已存在")

        role = SysRole(
            code=code, name=name, description=description,
            data_scope=_check_data_scope(data_scope), sort_order=sort_order,
            dept_check_strictly=dept_check_strictly,
            menu_check_strictly=menu_check_strictly,
        )
        self.db.add(role)
        self.db.flush()
        if menu_ids:
            self.assign_menus(role.id, menu_ids)
        return role

    def update_role(self, role_id: int, **kwargs) -> SysRole:
        role = self._require_role(role_id)

        for key, value in kwargs.items():
            if key == "code" and value != role.code:
                existing = self.get_role_by_code(value)
                if existing:
                    raise ValidationError(f"角色编码 '{value}' 已存在")
            if key == "data_scope":
                value = _check_data_scope(value)
            if hasattr(role, key):
                setattr(role, key, value)

        self.db.flush()
        return role

    def delete_role(self, role_id: int) -> None:
        role = self._require_role(role_id)
        if role.is_system:
            raise ValidationError(f"系统内置角色 '{role.name}' 不可删除")
        user_count = self.db.query(SysUserRole).filter(SysUserRole.role_id == role_id).count()
        if user_count > 0:
            raise ValidationError(f"角色 '{role.name}' 已分配给 {user_count} 个用户，不能删除")

        self.db.query(SysRoleMenu).filter(SysRoleMenu.role_id == role_id).delete()
        self.db.query(SysRoleDept).filter(SysRoleDept.role_id == role_id).delete()
        self.db.delete(role)
        self.db.flush()

    def get_role_user_ids(self, role_id: int) -> Set[int]:
        rows = self.db.query(SysUserRole.user_id).filter(SysUserRole.role_id == role_id).all()
        return {row[0] for row in rows}

    # ===== Menu grants =====

    def assign_menus(self, role_id: int, menu_ids: List[int]) -> None:
        """替换角色的全部菜单授权"""
        self._require_role(role_id)
        menu_ids = sorted(set(menu_ids))
        if menu_ids:
            found = {row[0] for row in self.db.query(SysMenu.id).filter(SysMenu.id.in_(menu_ids)).all()}
            missing = [mid for mid in menu_ids if mid not in found]
            if missing:
                raise NotFoundError(f"菜单 ID {missing} 不存在", "sys_menu", missing[0])

        self.db.query(SysRoleMenu).filter(SysRoleMenu.role_id == role_id).delete()
        for mid in menu_ids:
            self.db.add(SysRoleMenu(role_id=role_id, menu_id=mid))
        self.db.flush()

    def get_granted_menu_ids(self, role_id: int) -> List[int]:
        """角色已授权菜单 ID，menu_check_strictly 时去掉有已授权子菜单的父菜单"""
        role = self._require_role(role_id)
        menus = (
            self.db.query(SysMenu)
            .join(SysRoleMenu, SysRoleMenu.menu_id == SysMenu.id)
            .filter(SysRoleMenu.role_id == role_id)
            .order_by(SysMenu.parent_id, SysMenu.sort_order, SysMenu.id)
            .all()
        )
        if role.menu_check_strictly:
            return strict_selection(menus)
        return [m.id for m in menus]

    def menu_tree_select(self, role_id: int) -> Dict:
        """角色菜单授权树：全部菜单下拉树 + 已勾选节点"""
        checked = self.get_granted_menu_ids(role_id)
        menus = self.db.query(SysMenu).order_by(SysMenu.sort_order, SysMenu.id).all()
        return {"checked_keys": checked, "menus": build_tree_select(menus)}

    # ===== Dept grants (CUSTOM data scope) =====

    def auth_data_scope(self, role_id: int, data_scope: str, dept_ids: Optional[List[int]] = None,
                        dept_check_strictly: Optional[bool] = None) -> SysRole:
        """设置角色数据范围，并替换自定义数据范围的部门授权"""
        role = self._require_role(role_id)
        role.data_scope = _check_data_scope(data_scope)
        if dept_check_strictly is not None:
            role.dept_check_strictly = dept_check_strictly

        dept_ids = sorted(set(dept_ids or []))
        if dept_ids:
            found = {
                row[0] for row in
                self.db.query(SysDepartment.id).filter(SysDepartment.id.in_(dept_ids)).all()
            }
            missing = [did for did in dept_ids if did not in found]
            if missing:
                raise NotFoundError(f"部门 ID {missing} 不存在", "sys_department", missing[0])

        self.db.query(SysRoleDept).filter(SysRoleDept.role_id == role_id).delete()
        for did in dept_ids:
            self.db.add(SysRoleDept(role_id=role_id, dept_id=did))
        self.db.flush()
        return role

    def get_granted_dept_ids(self, role_id: int) -> List[int]:
        """角色已授权部门 ID，dept_check_strictly 时去掉有已授权子部门的父部门"""
        role = self._require_role(role_id)
        depts = (
            self.db.query(SysDepartment)
            .join(SysRoleDept, SysRoleDept.dept_id == SysDepartment.id)
            .filter(SysRoleDept.role_id == role_id)
            .order_by(SysDepartment.parent_id, SysDepartment.sort_order, SysDepartment.id)
            .all()
        )
        if role.dept_check_strictly:
            return strict_selection(depts)
        return [d.id for d in depts]

    def dept_tree_select(self, role_id: int) -> Dict:
        """角色部门授权树：全部部门下拉树 + 已勾选节点"""
        checked = self.get_granted_dept_ids(role_id)
        depts = self.db.query(SysDepartment).order_by(SysDepartment.sort_order, SysDepartment.id).all()
        return {"checked_keys": checked, "depts": build_tree_select(depts)}

    # ===== User-Role Operations =====

    def get_user_role_ids(self, user_id: int) -> List[int]:
        rows = self.db.query(SysUserRole.role_id).filter(SysUserRole.user_id == user_id).all()
        return sorted(row[0] for row in rows)

    def assign_user_roles(self, user_id: int, role_ids: List[int]) -> None:
        """替换用户的全部角色"""
        if not self.db.query(SysUser.id).filter(SysUser.id == user_id).first():
            raise NotFoundError(f"用户 ID {user_id} 不存在", "sys_user", user_id)
        role_ids = sorted(set(role_ids))
        for rid in role_ids:
            self._require_role(rid)

        self.db.query(SysUserRole).filter(SysUserRole.user_id == user_id).delete()
        for rid in role_ids:
            self.db.add(SysUserRole(user_id=user_id, role_id=rid))
        self.db.flush()
