"""
认证 API 与种子数据测试
"""
from fastapi.testclient import TestClient

from app.config import settings
from app.system.models.menu import SysMenu
from app.system.models.rbac import SysRole
from app.system.models.user import SysUser
from app.system.services.seed import seed_system_data


class TestLogin:

    def test_login_success(self, client: TestClient, factory, permission_provider):
        user = factory.user("zhang", password="secret1")
        response = client.post("/auth/login", json={"username": "zhang", "password": "secret1"})

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["user_id"] == user.id
        assert data["access_token"]
        # 登录时重新聚合权限
        assert user.id in permission_provider.cached_user_ids()

    def test_login_wrong_password(self, client: TestClient, factory):
        factory.user("zhang", password="secret1")
        response = client.post("/auth/login", json={"username": "zhang", "password": "wrong"})
        assert response.status_code == 401
        assert response.json()["detail"] == "用户名或密码错误"

    def test_login_disabled_user(self, client: TestClient, factory, db_session):
        user = factory.user("zhang", password="secret1")
        user.is_active = False
        db_session.commit()
        response = client.post("/auth/login", json={"username": "zhang", "password": "secret1"})
        assert response.status_code == 401

    def test_invalid_token(self, client: TestClient):
        response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401


class TestCurrentUser:

    def test_super_admin(self, client: TestClient, auth_headers):
        data = client.get("/auth/me", headers=auth_headers).json()
        assert data["user"]["username"] == "admin"
        assert data["roles"] == ["admin"]
        assert data["permissions"] == ["*:*:*"]
        assert data["data_scope"] == "ALL"

    def test_regular_user(self, client: TestClient, factory):
        dept = factory.dept("研发部")
        users = factory.menu("用户管理", perms="system:user:list,system:user:query")
        depts = factory.menu("部门管理", perms="system:dept:list")
        first = factory.role("dev", data_scope="DEPT", menus=[users])
        second = factory.role("lead", data_scope="DEPT_AND_CHILD", menus=[users, depts])
        user = factory.user("zhang", dept=dept, roles=[first, second])

        data = client.get("/auth/me", headers=factory.headers(user)).json()
        assert data["roles"] == ["dev", "lead"]
        assert data["permissions"] == ["system:dept:list", "system:user:list", "system:user:query"]
        assert data["data_scope"] == "DEPT_AND_CHILD"


class TestSeed:

    def test_seed_creates_system_data(self, db_session):
        stats = seed_system_data(db_session)

        assert stats["depts"] == 1
        assert stats["roles"] == 2
        assert stats["users"] == 1
        assert db_session.query(SysMenu).count() == stats["menus"] == 21
        admin = db_session.query(SysUser).filter(SysUser.username == settings.ADMIN_USERNAME).first()
        assert admin.is_super_admin

        button = db_session.query(SysMenu).filter(SysMenu.perms == "system:dept:remove").first()
        parent = db_session.query(SysMenu).filter(SysMenu.id == button.parent_id).first()
        assert button.ancestors == f"{parent.ancestors},{parent.id}"

    def test_seed_is_idempotent(self, db_session):
        seed_system_data(db_session)
        stats = seed_system_data(db_session)
        assert not any(stats.values())
        assert db_session.query(SysRole).count() == 2

    def test_seeded_admin_can_log_in(self, client: TestClient, db_session):
        seed_system_data(db_session)
        response = client.post("/auth/login", json={
            "username": settings.ADMIN_USERNAME, "password": settings.ADMIN_PASSWORD,
        })
        assert response.status_code == 200
