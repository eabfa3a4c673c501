"""
部门数据作用域解析器

根据主体的角色集合和各角色的 data_scope 配置，解析出列表查询的行级可见性谓词。
多个角色的条件取并集（OR），ALL 直接返回不过滤，无可用角色时返回 AlwaysFalse。
"""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.security.context import Principal, RoleGrant
from core.security.data_scope import (
    ALWAYS_FALSE, UNRESTRICTED, DataScope, DeptEquals, DeptIn, IDataScopeResolver,
    ScopePredicate, Unrestricted, UserEquals, combine_any, compile_predicate,
)
from core.security.errors import PermissionDenied
from app.system.models.org import SysDepartment
from app.system.models.rbac import SysRole, SysRoleDept, SysUserRole
from app.system.models.user import SysUser
from app.system.services.ancestor_service import descendant_ids

logger = logging.getLogger(__name__)

DEPT_LIST_PERMISSION = "system:dept:list"
USER_LIST_PERMISSION = "system:user:list"
ROLE_LIST_PERMISSION = "system:role:list"


class DeptDataScopeResolver(IDataScopeResolver):
    """部门数据作用域解析器（无状态，每次调用按当前存储计算）"""

    def __init__(self, db: Session):
        self.db = db

    def resolve_scope(self, principal: Principal, permission_key: Optional[str],
                      dept_alias, user_alias=None) -> ScopePredicate:
        """
        解析主体对 permission_key 的数据范围

        Args:
            principal: 当前主体
            permission_key: 列表接口的权限标识，角色需持有才参与计算
            dept_alias: 目标表的部门列
            user_alias: 目标表的用户列，未配置时 SELF 范围降级为 AlwaysFalse
        """
        if principal.is_super_admin:
            return UNRESTRICTED

        try:
            clauses = []
            for role in principal.active_roles:
                if not role.holds(permission_key):
                    continue
                clause = self._role_clause(principal, role, user_alias)
                if isinstance(clause, Unrestricted):
                    logger.debug(f"{principal!r} unrestricted via role {role.key}")
                    return UNRESTRICTED
                clauses.append(clause)
        except SQLAlchemyError:
            logger.exception(f"Data scope resolution failed for {principal!r}, denying")
            return ALWAYS_FALSE

        predicate = combine_any(clauses)
        logger.debug(f"{principal!r} scope for {permission_key!r}: {predicate!r}")
        return predicate

    def _role_clause(self, principal: Principal, role: RoleGrant, user_alias) -> ScopePredicate:
        scope = DataScope.parse(role.data_scope)
        if scope is None:
            logger.warning(f"Role {role.key} has unknown data_scope {role.data_scope!r}, ignored")
            return ALWAYS_FALSE

        if scope == DataScope.ALL:
            return UNRESTRICTED

        if scope == DataScope.CUSTOM:
            return DeptIn(frozenset(self.granted_dept_ids(role.id)))

        if scope == DataScope.SELF:
            if user_alias is None:
                logger.debug(f"Role {role.key} has SELF scope but query has no user column")
                return ALWAYS_FALSE
            return UserEquals(principal.id)

        if principal.own_dept_id is None:
            logger.debug(f"{principal!r} has no department, {scope.value} scope yields nothing")
            return ALWAYS_FALSE

        if scope == DataScope.DEPT:
            return DeptEquals(principal.own_dept_id)

        # DEPT_AND_CHILD
        ids = descendant_ids(self.db, SysDepartment, principal.own_dept_id)
        ids.add(principal.own_dept_id)
        return DeptIn(frozenset(ids))

    def granted_dept_ids(self, role_id: int) -> set:
        rows = self.db.query(SysRoleDept.dept_id).filter(SysRoleDept.role_id == role_id).all()
        return {row[0] for row in rows}

    # =============== Query helpers ===============

    def filter_query(self, query, principal: Principal, permission_key: Optional[str],
                     dept_alias, user_alias=None):
        """将数据范围条件 AND 到查询上"""
        predicate = self.resolve_scope(principal, permission_key, dept_alias, user_alias)
        return query.filter(compile_predicate(predicate, dept_alias, user_alias))

    def check_dept_data_scope(self, principal: Principal, dept_id: int) -> None:
        """校验部门是否在主体的数据范围内"""
        if principal.is_super_admin:
            return
        query = self.db.query(SysDepartment.id).filter(SysDepartment.id == dept_id)
        query = self.filter_query(query, principal, DEPT_LIST_PERMISSION, SysDepartment.id)
        if query.first() is None:
            logger.info(f"{principal!r} denied access to department {dept_id}")
            raise PermissionDenied()

    def check_user_data_scope(self, principal: Principal, user_id: int) -> None:
        """校验用户是否在主体的数据范围内"""
        if principal.is_super_admin:
            return
        query = self.db.query(SysUser.id).filter(SysUser.id == user_id)
        query = self.filter_query(query, principal, USER_LIST_PERMISSION, SysUser.dept_id, SysUser.id)
        if query.first() is None:
            logger.info(f"{principal!r} denied access to user {user_id}")
            raise PermissionDenied()

    # =============== Roles ===============

    def role_scope_clause(self, principal: Principal):
        """
        角色按持有用户的部门 / 用户本人过滤的条件

        角色本身不属于部门：主体能看到的角色，是其数据范围内至少有一个用户持有的角色。
        不受限（超级管理员或 ALL）时返回 None，未分配给任何用户的角色也可见。
        """
        if principal.is_super_admin:
            return None
        predicate = self.resolve_scope(principal, ROLE_LIST_PERMISSION, SysUser.dept_id, SysUser.id)
        if isinstance(predicate, Unrestricted):
            return None
        holders = (
            select(SysUserRole.role_id)
            .join(SysUser, SysUser.id == SysUserRole.user_id)
            .where(compile_predicate(predicate, SysUser.dept_id, SysUser.id))
        )
        return SysRole.id.in_(holders)

    def check_role_data_scope(self, principal: Principal, role_id: int) -> None:
        """校验角色是否在主体的数据范围内"""
        clause = self.role_scope_clause(principal)
        if clause is None:
            return
        if self.db.query(SysRole.id).filter(SysRole.id == role_id, clause).first() is None:
            logger.info(f"{principal!r} denied access to role {role_id}")
            raise PermissionDenied()
