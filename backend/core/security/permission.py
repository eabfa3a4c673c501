"""
core/security/permission.py - 权限提供者接口

定义 IPermissionProvider 抽象接口，app 层实现此接口提供带缓存的动态 RBAC。
实现实例在应用启动时创建，挂在 app.state 上，通过依赖注入交给消费者，
角色/菜单/授权变更时由对应的管理操作同步失效。

模块中的 has_* 函数对已聚合的权限集合做纯判断，不访问存储。
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional

from core.security.context import ALL_PERMISSION, SUPER_ADMIN_ROLE_KEY, Principal


@dataclass(frozen=True)
class PermissionSet:
    """聚合后的权限快照（登录/刷新时计算，请求期间只读）"""

    permissions: FrozenSet[str] = field(default_factory=frozenset)
    role_keys: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_all(self) -> bool:
        return ALL_PERMISSION in self.permissions


def has_permission(perms: PermissionSet, permission: str) -> bool:
    """是否拥有某权限（通配权限视为拥有全部）"""
    if not permission:
        return False
    if perms.is_all:
        return True
    return permission.strip() in perms.permissions


def lacks_permission(perms: PermissionSet, permission: str) -> bool:
    return not has_permission(perms, permission)


def has_any_permissions(perms: PermissionSet, permissions: Iterable[str]) -> bool:
    return any(has_permission(perms, p) for p in permissions)


def has_role(perms: PermissionSet, role_key: str) -> bool:
    """是否拥有某角色（admin 角色视为拥有全部角色）"""
    if not role_key:
        return False
    if SUPER_ADMIN_ROLE_KEY in perms.role_keys:
        return True
    return role_key.strip() in perms.role_keys


def has_any_roles(perms: PermissionSet, role_keys: Iterable[str]) -> bool:
    return any(has_role(perms, r) for r in role_keys)


class IPermissionProvider(ABC):
    """权限提供者接口 - app 层实现此接口以对接动态 RBAC"""

    @abstractmethod
    def get_permission_set(self, principal: Principal) -> PermissionSet:
        """获取主体的权限快照（可能来自缓存）"""

    @abstractmethod
    def refresh(self, principal: Principal) -> PermissionSet:
        """重新计算并写入缓存"""

    @abstractmethod
    def invalidate_user(self, user_id: int) -> None:
        """失效单个用户缓存"""

    @abstractmethod
    def invalidate_all(self) -> None:
        """失效全部缓存"""

    def has_permission(self, principal: Principal, permission: str) -> bool:
        if principal.is_super_admin:
            return True
        return has_permission(self.get_permission_set(principal), permission)

    def has_any_permissions(self, principal: Principal, permissions: Iterable[str]) -> bool:
        if principal.is_super_admin:
            return True
        return has_any_permissions(self.get_permission_set(principal), permissions)

    def has_role(self, principal: Principal, role_key: Optional[str]) -> bool:
        if principal.is_super_admin:
            return True
        return has_role(self.get_permission_set(principal), role_key or "")


__all__ = [
    "PermissionSet",
    "has_permission",
    "lacks_permission",
    "has_any_permissions",
    "has_role",
    "has_any_roles",
    "IPermissionProvider",
]
