"""
集中定义所有权限码常量

格式 模块:资源:操作，菜单的 perms 字段引用这些值。
"""

# 用户管理
USER_LIST = "system:user:list"
USER_QUERY = "system:user:query"
USER_ADD = "system:user:add"
USER_EDIT = "system:user:edit"
USER_REMOVE = "system:user:remove"

# 角色管理
ROLE_LIST = "system:role:list"
ROLE_QUERY = "system:role:query"
ROLE_ADD = "system:role:add"
ROLE_EDIT = "system:role:edit"
ROLE_REMOVE = "system:role:remove"

# 菜单管理
MENU_LIST = "system:menu:list"
MENU_QUERY = "system:menu:query"
MENU_ADD = "system:menu:add"
MENU_EDIT = "system:menu:edit"
MENU_REMOVE = "system:menu:remove"

# 部门管理
DEPT_LIST = "system:dept:list"
DEPT_QUERY = "system:dept:query"
DEPT_ADD = "system:dept:add"
DEPT_EDIT = "system:dept:edit"
DEPT_REMOVE = "system:dept:remove"
