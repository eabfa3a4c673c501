"""
core/security/errors.py

数据权限 / 层级维护异常

全部继承 ValueError，路由层沿用 `except ValueError -> 400` 的处理方式，
NotFoundError 单独映射为 404。
"""


class DataScopeError(ValueError):
    """层级与数据权限相关异常的基类"""

    pass


class ValidationError(DataScopeError):
    """输入或配置不合法（自引用父节点、环、重名、父节点停用等）"""

    pass


class NotFoundError(DataScopeError):
    """节点、父节点或角色不存在，操作在写入前中止"""

    def __init__(self, message: str, entity: str = "", entity_id=None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(message)


class ConsistencyError(DataScopeError):
    """祖级路径与预期前缀不一致（数据漂移）"""

    def __init__(self, message: str, node_id=None, ancestors: str = ""):
        self.node_id = node_id
        self.ancestors = ancestors
        super().__init__(message)


# 对外统一的拒绝文案，内部原因只写日志
DATA_PERMISSION_DENIED = "没有权限访问数据"


class PermissionDenied(Exception):
    """权限拒绝异常（路由层映射为 403）"""

    def __init__(self, message: str = DATA_PERMISSION_DENIED):
        super().__init__(message)


__all__ = [
    "DataScopeError",
    "ValidationError",
    "NotFoundError",
    "ConsistencyError",
    "PermissionDenied",
    "DATA_PERMISSION_DENIED",
]
