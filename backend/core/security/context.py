"""
core/security/context.py

主体（Principal）上下文 - 数据权限解析与权限聚合的输入

Principal 是请求期间的只读快照：用户 ID、所属部门、角色集合、是否超级管理员。
app 层负责从数据库装配，core 层只消费。
"""
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional, Tuple

# 超级管理员拥有的通配权限与角色标识
ALL_PERMISSION = "*:*:*"
SUPER_ADMIN_ROLE_KEY = "admin"


def split_tokens(raw: Optional[str]) -> Tuple[str, ...]:
    """按逗号切分权限字符串，去除空白并丢弃空项"""
    if not raw:
        return ()
    return tuple(t.strip() for t in raw.split(",") if t.strip())


@dataclass(frozen=True)
class RoleGrant:
    """
    主体持有的单个角色

    Attributes:
        id: 角色ID
        key: 角色标识（SysRole.code）
        data_scope: 数据范围（DataScope 枚举值字符串）
        is_active: 角色是否启用
        permissions: 角色经菜单授权获得的权限字符串
    """

    id: int
    key: str
    data_scope: str
    is_active: bool = True
    permissions: FrozenSet[str] = field(default_factory=frozenset)

    def holds(self, permission_key: Optional[str]) -> bool:
        """角色是否持有权限键（逗号列表任一匹配即可，通配权限亦可）"""
        if not permission_key:
            return True
        if ALL_PERMISSION in self.permissions:
            return True
        return any(token in self.permissions for token in split_tokens(permission_key))


@dataclass(frozen=True)
class Principal:
    """
    已认证主体

    Attributes:
        id: 用户ID
        own_dept_id: 所属部门ID（可为空）
        roles: 角色集合
        is_super_admin: 超级管理员，跳过所有数据权限与权限校验
        username: 用户名（仅用于日志）
    """

    id: int
    own_dept_id: Optional[int] = None
    roles: Tuple[RoleGrant, ...] = ()
    is_super_admin: bool = False
    username: Optional[str] = None

    @property
    def active_roles(self) -> Tuple[RoleGrant, ...]:
        return tuple(r for r in self.roles if r.is_active)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "own_dept_id": self.own_dept_id,
            "is_super_admin": self.is_super_admin,
            "roles": [r.key for r in self.roles],
        }

    def __repr__(self) -> str:
        return (
            f"Principal(id={self.id}, username={self.username!r}, "
            f"dept={self.own_dept_id}, roles={len(self.roles)}, admin={self.is_super_admin})"
        )


__all__ = [
    "ALL_PERMISSION",
    "SUPER_ADMIN_ROLE_KEY",
    "split_tokens",
    "RoleGrant",
    "Principal",
]
