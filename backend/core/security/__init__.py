"""
core/security - 安全模块

包含框架的核心安全组件：
- context: 主体（Principal）与角色快照
- data_scope: 数据作用域谓词与编译
- permission: 权限快照、权限判断与权限提供者接口
- errors: 层级维护 / 数据权限异常

使用方式:
    >>> from core.security import Principal, RoleGrant, DataScope, compile_predicate
    >>> p = Principal(id=2, own_dept_id=10, roles=(RoleGrant(1, "dept_mgr", "DEPT"),))
    >>> highest_data_scope(p)
    <DataScope.DEPT: 'DEPT'>
"""

# 主体上下文
from core.security.context import (
    ALL_PERMISSION,
    SUPER_ADMIN_ROLE_KEY,
    Principal,
    RoleGrant,
    split_tokens,
)

# 数据作用域
from core.security.data_scope import (
    ALWAYS_FALSE,
    UNRESTRICTED,
    AlwaysFalse,
    AnyOf,
    DataScope,
    DeptEquals,
    DeptIn,
    IDataScopeResolver,
    ScopePredicate,
    Unrestricted,
    UserEquals,
    combine_any,
    compile_predicate,
    highest_data_scope,
    matches,
)

# 权限
from core.security.permission import (
    IPermissionProvider,
    PermissionSet,
    has_any_permissions,
    has_any_roles,
    has_permission,
    has_role,
    lacks_permission,
)

# 异常
from core.security.errors import (
    ConsistencyError,
    DATA_PERMISSION_DENIED,
    DataScopeError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)

__all__ = [
    # 主体上下文
    "ALL_PERMISSION",
    "SUPER_ADMIN_ROLE_KEY",
    "Principal",
    "RoleGrant",
    "split_tokens",
    # 数据作用域
    "ALWAYS_FALSE",
    "UNRESTRICTED",
    "AlwaysFalse",
    "AnyOf",
    "DataScope",
    "DeptEquals",
    "DeptIn",
    "IDataScopeResolver",
    "ScopePredicate",
    "Unrestricted",
    "UserEquals",
    "combine_any",
    "compile_predicate",
    "highest_data_scope",
    "matches",
    # 权限
    "IPermissionProvider",
    "PermissionSet",
    "has_any_permissions",
    "has_any_roles",
    "has_permission",
    "has_role",
    "lacks_permission",
    # 异常
    "ConsistencyError",
    "DATA_PERMISSION_DENIED",
    "DataScopeError",
    "NotFoundError",
    "PermissionDenied",
    "ValidationError",
]
