"""
系统种子数据 — 根部门、系统管理菜单、内置角色、超级管理员

幂等：已存在的记录跳过。节点通过 Service 写入，祖级路径由维护器计算。
"""
from sqlalchemy.orm import Session

from app.config import settings
from app.system.models.menu import SysMenu
from app.system.models.org import SysDepartment
from app.system.models.rbac import SysRole, SysRoleMenu
from app.system.services.menu_service import MenuService
from app.system.services.org_service import OrgService
from app.system.services.user_service import UserService


ROOT_DEPT = {"name": "总公司", "leader": "admin", "sort_order": 0}

SYSTEM_DIRECTORY = {"name": "系统管理", "menu_type": "directory", "path": "/system", "icon": "Settings", "sort_order": 1}

# (菜单, 按钮列表)；按钮为 (名称, 权限标识)
SYSTEM_MENUS = [
    (
        {"name": "用户管理", "path": "/system/users", "icon": "User", "perms": "system:user:list", "sort_order": 1},
        [("用户查询", "system:user:query"), ("用户新增", "system:user:add"),
         ("用户修改", "system:user:edit"), ("用户删除", "system:user:remove")],
    ),
    (
        {"name": "角色管理", "path": "/system/roles", "icon": "UserCheck", "perms": "system:role:list", "sort_order": 2},
        [("角色查询", "system:role:query"), ("角色新增", "system:role:add"),
         ("角色修改", "system:role:edit"), ("角色删除", "system:role:remove")],
    ),
    (
        {"name": "菜单管理", "path": "/system/menus", "icon": "Menu", "perms": "system:menu:list", "sort_order": 3},
        [("菜单查询", "system:menu:query"), ("菜单新增", "system:menu:add"),
         ("菜单修改", "system:menu:edit"), ("菜单删除", "system:menu:remove")],
    ),
    (
        {"name": "部门管理", "path": "/system/departments", "icon": "Network", "perms": "system:dept:list", "sort_order": 4},
        [("部门查询", "system:dept:query"), ("部门新增", "system:dept:add"),
         ("部门修改", "system:dept:edit"), ("部门删除", "system:dept:remove")],
    ),
]

SEED_ROLES = [
    {"code": "admin", "name": "超级管理员", "description": "拥有所有权限", "data_scope": "ALL", "sort_order": 1, "is_system": True},
    {"code": "common", "name": "普通角色", "description": "仅查看本人数据", "data_scope": "SELF", "sort_order": 2, "is_system": True},
]

# 普通角色可见的菜单（按权限标识）
COMMON_ROLE_PERMS = {"system:user:list", "system:user:query", "system:dept:list"}


def _find_menu(db: Session, name: str, parent_id):
    q = db.query(SysMenu).filter(SysMenu.name == name)
    q = q.filter(SysMenu.parent_id == parent_id) if parent_id else q.filter(SysMenu.parent_id.is_(None))
    return q.first()


def seed_system_data(db: Session) -> dict:
    """写入系统初始数据，已存在的记录跳过

    Returns dict with counts of created items.
    """
    stats = {"depts": 0, "menus": 0, "roles": 0, "grants": 0, "users": 0}

    # 1. Root department
    root = db.query(SysDepartment).filter(
        SysDepartment.name == ROOT_DEPT["name"], SysDepartment.parent_id.is_(None)
    ).first()
    if not root:
        root = OrgService(db).create_department(**ROOT_DEPT)
        stats["depts"] += 1

    # 2. Menus
    menu_service = MenuService(db)
    directory = _find_menu(db, SYSTEM_DIRECTORY["name"], None)
    if not directory:
        directory = menu_service.create_menu(**SYSTEM_DIRECTORY)
        stats["menus"] += 1
    for menu_data, buttons in SYSTEM_MENUS:
        menu = _find_menu(db, menu_data["name"], directory.id)
        if not menu:
            menu = menu_service.create_menu(parent_id=directory.id, menu_type="menu", **menu_data)
            stats["menus"] += 1
        for order, (name, perms) in enumerate(buttons, start=1):
            if not _find_menu(db, name, menu.id):
                menu_service.create_menu(
                    name=name, menu_type="button", parent_id=menu.id, perms=perms, sort_order=order,
                )
                stats["menus"] += 1
    db.flush()

    # 3. Roles
    for role_data in SEED_ROLES:
        if not db.query(SysRole).filter(SysRole.code == role_data["code"]).first():
            db.add(SysRole(**role_data))
            stats["roles"] += 1
    db.flush()

    # 4. Common role menu grants (directory + matching menus/buttons)
    common = db.query(SysRole).filter(SysRole.code == "common").first()
    if common and not db.query(SysRoleMenu).filter(SysRoleMenu.role_id == common.id).first():
        granted = {directory.id}
        for m in db.query(SysMenu).all():
            if m.perms and m.perms in COMMON_ROLE_PERMS:
                granted.add(m.id)
        for mid in sorted(granted):
            db.add(SysRoleMenu(role_id=common.id, menu_id=mid))
            stats["grants"] += 1
        db.flush()

    # 5. Super admin
    users = UserService(db)
    if not users.get_user_by_username(settings.ADMIN_USERNAME):
        users.create_user(
            username=settings.ADMIN_USERNAME, password=settings.ADMIN_PASSWORD,
            nickname="管理员", dept_id=root.id, is_super_admin=True,
        )
        stats["users"] += 1

    db.commit()
    return stats
