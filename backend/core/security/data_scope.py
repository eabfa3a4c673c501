"""
core/security/data_scope.py

数据作用域 - 领域无关的行级可见性抽象

角色的 data_scope 决定持有者可见的部门/用户数据范围。解析结果不是 SQL 文本，
而是一组带标签的谓词（Unrestricted / DeptEquals / DeptIn / UserEquals /
AlwaysFalse / AnyOf），由 compile_predicate 编译为参数化的 SQLAlchemy 条件。
app 层通过实现 IDataScopeResolver 提供存储相关的解析（自定义授权、子部门）。
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Tuple, Union

from sqlalchemy import false, or_, true
from sqlalchemy.sql.elements import ColumnElement

from core.security.context import Principal


class DataScope(str, Enum):
    """角色数据范围"""
    ALL = "ALL"                        # 全部数据权限
    CUSTOM = "CUSTOM"                  # 自定数据权限（角色-部门授权）
    DEPT = "DEPT"                      # 本部门数据权限
    DEPT_AND_CHILD = "DEPT_AND_CHILD"  # 本部门及以下数据权限
    SELF = "SELF"                      # 仅本人数据权限

    @property
    def label(self) -> str:
        return DATA_SCOPE_LABELS[self]

    @property
    def priority(self) -> int:
        """数字越小范围越大"""
        return DATA_SCOPE_PRIORITY[self]

    @classmethod
    def parse(cls, value) -> Optional["DataScope"]:
        """解析存储值，未知值返回 None"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return None


DATA_SCOPE_LABELS = {
    DataScope.ALL: "全部数据权限",
    DataScope.CUSTOM: "自定数据权限",
    DataScope.DEPT: "本部门数据权限",
    DataScope.DEPT_AND_CHILD: "本部门及以下数据权限",
    DataScope.SELF: "仅本人数据权限",
}

DATA_SCOPE_PRIORITY = {
    DataScope.ALL: 1,
    DataScope.CUSTOM: 2,
    DataScope.DEPT_AND_CHILD: 3,
    DataScope.DEPT: 4,
    DataScope.SELF: 5,
}


# =============== 谓词 ===============

@dataclass(frozen=True)
class Unrestricted:
    """不过滤"""


@dataclass(frozen=True)
class AlwaysFalse:
    """显式拒绝：不返回任何行"""


@dataclass(frozen=True)
class DeptEquals:
    dept_id: int


@dataclass(frozen=True)
class DeptIn:
    dept_ids: FrozenSet[int]


@dataclass(frozen=True)
class UserEquals:
    user_id: int


@dataclass(frozen=True)
class AnyOf:
    """多个角色条件的并集（OR）"""
    clauses: Tuple["ScopePredicate", ...]


ScopePredicate = Union[Unrestricted, AlwaysFalse, DeptEquals, DeptIn, UserEquals, AnyOf]

UNRESTRICTED = Unrestricted()
ALWAYS_FALSE = AlwaysFalse()


def _flatten(clauses: Iterable[ScopePredicate]):
    for clause in clauses:
        if isinstance(clause, AnyOf):
            yield from _flatten(clause.clauses)
        else:
            yield clause


def combine_any(clauses: Iterable[ScopePredicate]) -> ScopePredicate:
    """
    OR 合并多个角色条件

    - 任一 Unrestricted -> Unrestricted
    - AlwaysFalse 在并集中没有贡献，直接丢弃
    - 多个部门条件合并为一个 DeptIn
    - 没有剩余条件 -> AlwaysFalse
    """
    kept = []
    for clause in _flatten(clauses):
        if isinstance(clause, Unrestricted):
            return UNRESTRICTED
        if isinstance(clause, AlwaysFalse):
            continue
        if clause not in kept:
            kept.append(clause)

    if not kept:
        return ALWAYS_FALSE
    if len(kept) == 1:
        return kept[0]

    dept_ids = set()
    parts = []
    for clause in kept:
        if isinstance(clause, DeptIn):
            dept_ids.update(clause.dept_ids)
        elif isinstance(clause, DeptEquals):
            dept_ids.add(clause.dept_id)
        else:
            parts.append(clause)
    if dept_ids:
        parts.append(DeptIn(frozenset(dept_ids)))

    if len(parts) == 1:
        return parts[0]
    # 固定顺序，保证结果与角色遍历顺序无关
    return AnyOf(tuple(sorted(parts, key=_sort_key)))


def _sort_key(clause: ScopePredicate):
    if isinstance(clause, DeptEquals):
        return (0, clause.dept_id)
    if isinstance(clause, DeptIn):
        return (1, tuple(sorted(clause.dept_ids)))
    if isinstance(clause, UserEquals):
        return (2, clause.user_id)
    return (3, repr(clause))


def compile_predicate(predicate: ScopePredicate, dept_column,
                      owner_column=None) -> ColumnElement:
    """
    将谓词编译为 SQLAlchemy 条件（参数化，无字符串拼接）

    Args:
        predicate: 数据范围谓词
        dept_column: 部门列（如 SysUser.dept_id）
        owner_column: 所属用户列（如 SysUser.id），未配置时 UserEquals 编译为 false
    """
    if isinstance(predicate, Unrestricted):
        return true()
    if isinstance(predicate, AlwaysFalse):
        return false()
    if isinstance(predicate, DeptEquals):
        return dept_column == predicate.dept_id
    if isinstance(predicate, DeptIn):
        if not predicate.dept_ids:
            return false()
        return dept_column.in_(sorted(predicate.dept_ids))
    if isinstance(predicate, UserEquals):
        if owner_column is None:
            return false()
        return owner_column == predicate.user_id
    if isinstance(predicate, AnyOf):
        if not predicate.clauses:
            return false()
        return or_(*(compile_predicate(c, dept_column, owner_column) for c in predicate.clauses))
    raise TypeError(f"Unknown scope predicate: {predicate!r}")


def matches(predicate: ScopePredicate, dept_id: Optional[int], owner_id: Optional[int] = None) -> bool:
    """在内存中判断一行是否可见（与 compile_predicate 语义一致）"""
    if isinstance(predicate, Unrestricted):
        return True
    if isinstance(predicate, AlwaysFalse):
        return False
    if isinstance(predicate, DeptEquals):
        return dept_id is not None and dept_id == predicate.dept_id
    if isinstance(predicate, DeptIn):
        return dept_id is not None and dept_id in predicate.dept_ids
    if isinstance(predicate, UserEquals):
        return owner_id is not None and owner_id == predicate.user_id
    if isinstance(predicate, AnyOf):
        return any(matches(c, dept_id, owner_id) for c in predicate.clauses)
    return False


def highest_data_scope(principal: Principal) -> DataScope:
    """主体所有启用角色中范围最大的数据权限，无角色时为 SELF"""
    if principal.is_super_admin:
        return DataScope.ALL
    highest = DataScope.SELF
    for role in principal.active_roles:
        scope = DataScope.parse(role.data_scope)
        if scope is not None and scope.priority < highest.priority:
            highest = scope
    return highest


class IDataScopeResolver(ABC):
    """数据作用域解析器接口 - app 层实现"""

    @abstractmethod
    def resolve_scope(self, principal: Principal, permission_key: Optional[str],
                      dept_alias, user_alias=None) -> ScopePredicate:
        """根据主体的角色集合，解析出权限键对应的行可见性谓词"""
        ...


__all__ = [
    "DataScope",
    "DATA_SCOPE_LABELS",
    "Unrestricted",
    "AlwaysFalse",
    "DeptEquals",
    "DeptIn",
    "UserEquals",
    "AnyOf",
    "ScopePredicate",
    "UNRESTRICTED",
    "ALWAYS_FALSE",
    "combine_any",
    "compile_predicate",
    "matches",
    "highest_data_scope",
    "IDataScopeResolver",
]
