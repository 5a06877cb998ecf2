"""Menu administration and the per-user sidebar tree."""

from types import SimpleNamespace

from admin.menus import build_menu_tree, view_permission_for
from conftest import login
from models import Menu


def _menu(id, name, href=None, parent_id=None, order=0, permission=None, icon=None):
    return SimpleNamespace(
        id=id, name=name, href=href, parent_id=parent_id, order=order, permission=permission, icon=icon
    )


MENUS = [
    _menu(1, "Dashboard", "/", order=0, icon="Home"),
    _menu(2, "User Management", order=10, icon="Users"),
    _menu(3, "Users", "/users", parent_id=2, order=0),
    _menu(4, "Roles", "/roles", parent_id=2, order=1),
    _menu(5, "Reports", order=20),
    _menu(6, "Revenue", "/reports/revenue", parent_id=5, permission=SimpleNamespace(name="finance:read")),
]


class TestBuildMenuTree:
    def test_view_permission_for(self) -> None:
        assert view_permission_for("/users") == "users:view"
        assert view_permission_for("/reports/revenue/") == "revenue:view"
        assert view_permission_for("/") == "dashboard:view"

    def test_everything_visible(self) -> None:
        perms = frozenset({"dashboard:view", "users:view", "roles:view", "revenue:view", "finance:read"})
        tree = build_menu_tree(MENUS, perms)
        assert [i.name for i in tree] == ["Dashboard", "User Management", "Reports"]
        assert [c.name for c in tree[1].children] == ["Users", "Roles"]
        assert tree[0].icon == "Home"
        assert tree[1].children[0].icon == "Circle"

    def test_group_hidden_without_visible_children(self) -> None:
        tree = build_menu_tree(MENUS, frozenset({"dashboard:view"}))
        assert [i.name for i in tree] == ["Dashboard"]

    def test_children_filtered_individually(self) -> None:
        tree = build_menu_tree(MENUS, frozenset({"roles:view"}))
        assert [i.name for i in tree] == ["User Management"]
        assert [c.name for c in tree[0].children] == ["Roles"]

    def test_bound_permission_also_required(self) -> None:
        tree = build_menu_tree(MENUS, frozenset({"revenue:view"}))
        assert tree == []
        tree = build_menu_tree(MENUS, frozenset({"revenue:view", "finance:read"}))
        assert [i.name for i in tree] == ["Reports"]

    def test_no_permissions_no_menu(self) -> None:
        assert build_menu_tree(MENUS, frozenset()) == []


class TestMenuEndpoints:
    def test_crud(self, admin_client, db) -> None:
        group = admin_client.post("/menus", json={"name": "Tours", "icon": "Map", "order": 5})
        assert group.status_code == 201
        group_id = group.json()["id"]

        child = admin_client.post(
            "/menus", json={"name": "All tours", "href": "/tours", "parent_id": group_id}
        )
        assert child.status_code == 201
        child_id = child.json()["id"]

        listed = admin_client.get("/menus").json()["menus"]
        assert {m["id"] for m in listed} == {group_id, child_id}

        updated = admin_client.put(
            f"/menus/{child_id}", json={"name": "Tours list", "href": "/tours", "parent_id": group_id, "order": 2}
        )
        assert updated.status_code == 200
        assert updated.json()["order"] == 2

        assert admin_client.delete(f"/menus/{group_id}").status_code == 204
        db.expire_all()
        assert db.query(Menu).count() == 0

    def test_rejects_cycles_and_unknown_links(self, admin_client) -> None:
        parent = admin_client.post("/menus", json={"name": "P"}).json()
        child = admin_client.post("/menus", json={"name": "C", "parent_id": parent["id"]}).json()

        loop = admin_client.put(f"/menus/{parent['id']}", json={"name": "P", "parent_id": child["id"]})
        assert loop.status_code == 400
        itself = admin_client.put(f"/menus/{parent['id']}", json={"name": "P", "parent_id": parent["id"]})
        assert itself.status_code == 400
        assert admin_client.post("/menus", json={"name": "X", "parent_id": 999}).status_code == 400
        assert admin_client.post("/menus", json={"name": "X", "permission_id": 999}).status_code == 400

    def test_sidebar_for_limited_user(self, client, db, make_user, make_role, assign) -> None:
        group = Menu(name="User Management", order=10)
        db.add(group)
        db.flush()
        db.add_all([
            Menu(name="Dashboard", href="/", icon="Home", order=0),
            Menu(name="Users", href="/users", parent_id=group.id, order=0),
            Menu(name="Roles", href="/roles", parent_id=group.id, order=1),
        ])
        db.commit()

        user = make_user("side@x.com")
        assign(user, make_role("side", "users:view"))
        login(client, user.email)

        items = client.get("/auth/me/menus").json()["items"]
        assert [i["name"] for i in items] == ["User Management"]
        assert [c["name"] for c in items[0]["children"]] == ["Users"]
        assert items[0]["children"][0]["href"] == "/users"

    def test_menu_admin_needs_permission(self, client, make_user) -> None:
        user = make_user("nomenu@x.com")
        login(client, user.email)
        response = client.get("/menus")
        assert response.status_code == 303
        assert response.headers["location"] == "/unauthorized"
