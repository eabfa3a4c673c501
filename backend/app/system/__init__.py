"""系统管理域 — 组织、菜单、角色、用户与数据权限"""
