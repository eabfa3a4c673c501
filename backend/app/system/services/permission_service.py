"""
权限聚合 Service

从用户的启用角色出发，经角色-菜单授权汇总权限标识，并装配请求期间使用的 Principal。
"""
import logging
from typing import Dict, Iterable, List, Set, Tuple

from sqlalchemy.orm import Session

from core.security.context import (
    ALL_PERMISSION, SUPER_ADMIN_ROLE_KEY, Principal, RoleGrant, split_tokens,
)
from app.system.models.menu import SysMenu
from app.system.models.rbac import SysRole, SysRoleMenu, SysUserRole
from app.system.models.user import SysUser

logger = logging.getLogger(__name__)


class PermissionService:
    """权限聚合服务"""

    def __init__(self, db: Session):
        self.db = db

    # ===== Roles =====

    def get_user_roles(self, user_id: int, include_inactive: bool = False) -> List[SysRole]:
        q = (
            self.db.query(SysRole)
            .join(SysUserRole, SysUserRole.role_id == SysRole.id)
            .filter(SysUserRole.user_id == user_id)
        )
        if not include_inactive:
            q = q.filter(SysRole.is_active == True)
        return q.order_by(SysRole.sort_order, SysRole.id).all()

    def role_permissions(self, role_ids: Iterable[int]) -> Dict[int, Set[str]]:
        """各角色经启用且可见的菜单获得的权限标识"""
        role_ids = list(role_ids)
        result: Dict[int, Set[str]] = {rid: set() for rid in role_ids}
        if not role_ids:
            return result
        rows = (
            self.db.query(SysRoleMenu.role_id, SysMenu.perms)
            .join(SysMenu, SysMenu.id == SysRoleMenu.menu_id)
            .filter(
                SysRoleMenu.role_id.in_(role_ids),
                SysMenu.is_active == True,
                SysMenu.is_visible == True,
            )
            .all()
        )
        for role_id, perms in rows:
            result[role_id].update(split_tokens(perms))
        return result

    # ===== Principal =====

    def build_principal(self, user: SysUser) -> Principal:
        """装配主体快照：用户、部门与全部角色（含停用角色，由解析器跳过）"""
        if user.is_super_admin:
            return Principal(
                id=user.id, own_dept_id=user.dept_id,
                is_super_admin=True, username=user.username,
            )
        roles = self.get_user_roles(user.id, include_inactive=True)
        perms = self.role_permissions(r.id for r in roles)
        grants = tuple(
            RoleGrant(
                id=r.id, key=r.code, data_scope=r.data_scope or "",
                is_active=bool(r.is_active), permissions=frozenset(perms[r.id]),
            )
            for r in roles
        )
        return Principal(
            id=user.id, own_dept_id=user.dept_id, roles=grants,
            is_super_admin=False, username=user.username,
        )

    # ===== Aggregation =====

    def aggregate(self, principal: Principal) -> Tuple[Set[str], Set[str]]:
        """
        汇总主体的权限标识与角色标识

        超级管理员直接返回通配权限与 admin 角色，不访问存储。
        其余主体：全部启用角色的 code，以及这些角色经菜单授权得到的权限（按逗号拆分、去空白）。
        """
        if principal.is_super_admin:
            return {ALL_PERMISSION}, {SUPER_ADMIN_ROLE_KEY}

        role_ids = [r.id for r in principal.active_roles]
        active = (
            self.db.query(SysRole.id, SysRole.code)
            .filter(SysRole.id.in_(role_ids), SysRole.is_active == True)
            .all()
        ) if role_ids else []

        role_keys: Set[str] = set()
        for _, code in active:
            role_keys.add(code)

        permissions: Set[str] = set()
        for perms in self.role_permissions(rid for rid, _ in active).values():
            permissions |= perms

        logger.debug(f"Aggregated {len(permissions)} permissions, roles={sorted(role_keys)} for {principal!r}")
        return permissions, role_keys
