"""
core - 领域无关的权限框架层

包含：
- security: 主体上下文、数据作用域谓词、权限判断与异常

使用方式:
    >>> from core.security import Principal, DataScope, compile_predicate
    >>> from core.security.permission import IPermissionProvider

app 层实现 IDataScopeResolver / IPermissionProvider，core 层不依赖任何具体表结构。
"""
