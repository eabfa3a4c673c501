"""
Pytest 配置和共享 fixtures
"""
import os

# 测试不使用磁盘数据库，也不在启动时写种子数据
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SEED_ON_STARTUP", "false")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from app.database import Base, get_db
from app.main import app, init_permission_provider
from app.security.auth import get_password_hash, create_access_token
from app.system import models  # noqa - 注册全部系统表
from app.system.models.menu import SysMenu
from app.system.models.org import SysDepartment
from app.system.models.rbac import SysRole, SysRoleDept, SysRoleMenu, SysUserRole
from app.system.models.user import SysUser
from app.system.services.ancestor_service import AncestorMaintainer


@pytest.fixture(scope="function")
def db_engine():
    """创建内存数据库引擎"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """创建数据库会话"""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(scope="function")
def permission_provider(session_factory):
    """挂在 app.state 上的权限提供者（使用测试数据库）"""
    provider = init_permission_provider(app, session_factory)
    yield provider
    app.state.permission_provider = None


@pytest.fixture(scope="function")
def client(db_session, permission_provider):
    """创建测试客户端"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ============== 数据构造 ==============

class Factory:
    """测试数据构造：节点经祖级路径维护器写入，其余记录直接提交"""

    def __init__(self, db):
        self.db = db

    def dept(self, name, parent=None, dept_id=None, is_active=True):
        dept = SysDepartment(
            id=dept_id, name=name, parent_id=parent.id if parent is not None else None,
            is_active=is_active,
        )
        return AncestorMaintainer(self.db, SysDepartment).insert(dept)

    def menu(self, name, parent=None, perms="", menu_type="menu", is_active=True, is_visible=True):
        menu = SysMenu(
            name=name, parent_id=parent.id if parent is not None else None, perms=perms,
            menu_type=menu_type, is_active=is_active, is_visible=is_visible,
        )
        return AncestorMaintainer(self.db, SysMenu).insert(menu)

    def role(self, code, data_scope="ALL", menus=(), depts=(), is_active=True, **kwargs):
        role = SysRole(code=code, name=code, data_scope=data_scope, is_active=is_active, **kwargs)
        self.db.add(role)
        self.db.flush()
        for menu in menus:
            self.db.add(SysRoleMenu(role_id=role.id, menu_id=menu.id))
        for dept in depts:
            self.db.add(SysRoleDept(role_id=role.id, dept_id=dept.id))
        self.db.commit()
        return role

    def user(self, username, dept=None, roles=(), is_super_admin=False, password="123456"):
        user = SysUser(
            username=username, nickname=username,
            password_hash=get_password_hash(password),
            dept_id=dept.id if dept is not None else None,
            is_super_admin=is_super_admin, is_active=True,
        )
        self.db.add(user)
        self.db.flush()
        for role in roles:
            self.db.add(SysUserRole(user_id=user.id, role_id=role.id))
        self.db.commit()
        self.db.refresh(user)
        return user

    @staticmethod
    def headers(user) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def factory(db_session):
    return Factory(db_session)


# ============== 认证相关 Fixtures ==============

@pytest.fixture
def admin_user(factory):
    """超级管理员"""
    return factory.user("admin", is_super_admin=True)


@pytest.fixture
def auth_headers(factory, admin_user):
    """返回超级管理员认证的请求头"""
    return factory.headers(admin_user)
