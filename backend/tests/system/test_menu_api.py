"""
菜单管理 API 测试
覆盖 /system/menus 端点
"""
import pytest
from fastapi.testclient import TestClient

from app.system.models.menu import SysMenu


def create(client, headers, name, **extra):
    response = client.post("/system/menus", headers=headers, json={"name": name, **extra})
    assert response.status_code == 201, response.text
    return response.json()


class TestMenuAPI:
    """菜单管理 API 测试"""

    def test_list_menus_empty(self, client: TestClient, auth_headers):
        response = client.get("/system/menus", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == []

    def test_create_menu(self, client: TestClient, auth_headers):
        data = create(
            client, auth_headers, "测试菜单", path="/test", icon="Star",
            menu_type="menu", perms="system:test:list", sort_order=10,
        )
        assert data["name"] == "测试菜单"
        assert data["path"] == "/test"
        assert data["icon"] == "Star"
        assert data["menu_type"] == "menu"
        assert data["perms"] == "system:test:list"
        assert data["ancestors"] == "0"

    def test_create_menu_invalid_type(self, client: TestClient, auth_headers):
        response = client.post("/system/menus", headers=auth_headers, json={
            "name": "坏菜单", "menu_type": "widget",
        })
        assert response.status_code == 400

    def test_create_menu_duplicate(self, client: TestClient, auth_headers):
        create(client, auth_headers, "重复菜单")
        response = client.post("/system/menus", headers=auth_headers, json={"name": "重复菜单"})
        assert response.status_code == 400
        assert "已存在" in response.json()["detail"]

    def test_create_menu_missing_parent(self, client: TestClient, auth_headers, db_session):
        response = client.post("/system/menus", headers=auth_headers, json={
            "name": "孤儿", "parent_id": 9999,
        })
        assert response.status_code == 404
        assert db_session.query(SysMenu).count() == 0

    def test_update_menu(self, client: TestClient, auth_headers):
        menu = create(client, auth_headers, "旧名称")
        response = client.put(f"/system/menus/{menu['id']}", headers=auth_headers, json={
            "name": "新名称", "icon": "Home",
        })
        assert response.status_code == 200
        assert response.json()["name"] == "新名称"
        assert response.json()["icon"] == "Home"

    def test_move_menu_rewrites_buttons(self, client: TestClient, auth_headers, db_session):
        old_dir = create(client, auth_headers, "旧目录", menu_type="directory")
        new_dir = create(client, auth_headers, "新目录", menu_type="directory")
        menu = create(client, auth_headers, "用户管理", parent_id=old_dir["id"])
        button = create(client, auth_headers, "新增", parent_id=menu["id"], menu_type="button")
        assert button["ancestors"] == f"0,{old_dir['id']},{menu['id']}"

        response = client.put(f"/system/menus/{menu['id']}", headers=auth_headers, json={
            "parent_id": new_dir["id"],
        })
        assert response.status_code == 200
        assert response.json()["ancestors"] == f"0,{new_dir['id']}"

        moved = db_session.query(SysMenu).filter(SysMenu.id == button["id"]).first()
        db_session.refresh(moved)
        assert moved.ancestors == f"0,{new_dir['id']},{menu['id']}"

    def test_move_menu_under_its_button(self, client: TestClient, auth_headers):
        menu = create(client, auth_headers, "用户管理")
        button = create(client, auth_headers, "新增", parent_id=menu["id"], menu_type="button")
        response = client.put(f"/system/menus/{menu['id']}", headers=auth_headers, json={
            "parent_id": button["id"],
        })
        assert response.status_code == 400

    def test_delete_menu(self, client: TestClient, auth_headers):
        menu = create(client, auth_headers, "待删除")
        response = client.delete(f"/system/menus/{menu['id']}", headers=auth_headers)
        assert response.status_code == 204

    def test_delete_menu_with_children(self, client: TestClient, auth_headers):
        """有子菜单时不可删除"""
        parent = create(client, auth_headers, "父菜单", menu_type="directory")
        create(client, auth_headers, "子菜单", parent_id=parent["id"])

        response = client.delete(f"/system/menus/{parent['id']}", headers=auth_headers)
        assert response.status_code == 400
        assert "子菜单" in response.json()["detail"]

    def test_delete_granted_menu(self, client: TestClient, auth_headers, factory):
        menu = factory.menu("已授权")
        factory.role("r", menus=[menu])
        response = client.delete(f"/system/menus/{menu.id}", headers=auth_headers)
        assert response.status_code == 400
        assert "角色" in response.json()["detail"]

    def test_get_menu_tree(self, client: TestClient, auth_headers):
        """获取菜单树"""
        parent = create(client, auth_headers, "父菜单", menu_type="directory")
        create(client, auth_headers, "子菜单", parent_id=parent["id"])

        response = client.get("/system/menus/tree", headers=auth_headers)
        assert response.status_code == 200
        tree = response.json()
        assert [n["name"] for n in tree] == ["父菜单"]
        assert [n["name"] for n in tree[0]["children"]] == ["子菜单"]

    def test_tree_select_includes_disabled(self, client: TestClient, auth_headers):
        create(client, auth_headers, "停用菜单", is_active=False)
        tree = client.get("/system/menus/tree-select", headers=auth_headers).json()
        assert tree == [{"id": tree[0]["id"], "label": "停用菜单", "disabled": True, "children": []}]


class TestUserMenus:
    """当前用户导航菜单"""

    @pytest.fixture
    def menus(self, factory):
        system = factory.menu("系统管理", menu_type="directory")
        users = factory.menu("用户管理", parent=system, perms="system:user:list")
        factory.menu("用户新增", parent=users, menu_type="button", perms="system:user:add")
        factory.menu("隐藏页", parent=system, is_visible=False)
        empty = factory.menu("空目录", menu_type="directory")
        return {"system": system, "users": users, "empty": empty}

    def test_admin_sees_navigation(self, client: TestClient, auth_headers, menus):
        tree = client.get("/system/menus/user", headers=auth_headers).json()
        assert [n["name"] for n in tree] == ["系统管理"]
        assert [n["name"] for n in tree[0]["children"]] == ["用户管理"]
        assert tree[0]["children"][0]["children"] == []

    def test_user_sees_granted_menus_only(self, client: TestClient, factory, menus):
        role = factory.role("viewer", menus=[menus["system"], menus["users"], menus["empty"]])
        user = factory.user("viewer", roles=[role])

        tree = client.get("/system/menus/user", headers=factory.headers(user)).json()
        assert [n["name"] for n in tree] == ["系统管理"]

    def test_user_without_roles_sees_nothing(self, client: TestClient, factory, menus):
        user = factory.user("nobody")
        response = client.get("/system/menus/user", headers=factory.headers(user))
        assert response.status_code == 200
        assert response.json() == []

    def test_list_requires_permission(self, client: TestClient, factory, menus):
        role = factory.role("viewer", menus=[menus["users"]])
        user = factory.user("viewer", roles=[role])
        response = client.get("/system/menus", headers=factory.headers(user))
        assert response.status_code == 403

    def test_unauthenticated(self, client: TestClient):
        response = client.get("/system/menus/user")
        assert response.status_code in (401, 403)
