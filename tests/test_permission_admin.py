"""Permission catalogue endpoints."""

import pytest
from sqlalchemy.exc import IntegrityError

from database import get_db
from models import Permission, RolePermission


class TestPermissionEndpoints:
    def test_list_includes_granting_roles(self, admin_client) -> None:
        permissions = admin_client.get("/permissions").json()["permissions"]
        names = [p["name"] for p in permissions]
        assert names == sorted(names)
        users_view = next(p for p in permissions if p["name"] == "users:view")
        assert [r["name"] for r in users_view["roles"]] == ["admin"]

    def test_create(self, admin_client) -> None:
        response = admin_client.post("/permissions", json={"name": " tours:view ", "description": "See tours"})
        assert response.status_code == 201
        assert response.json()["name"] == "tours:view"

    def test_create_rejects_bad_name(self, admin_client) -> None:
        assert admin_client.post("/permissions", json={"name": "tours"}).status_code == 422
        assert admin_client.post("/permissions", json={"name": "tours:view:all"}).status_code == 422

    def test_create_duplicate(self, admin_client) -> None:
        assert admin_client.post("/permissions", json={"name": "users:view"}).status_code == 409

    def test_bulk_skips_existing(self, admin_client, db) -> None:
        response = admin_client.post(
            "/permissions/bulk",
            json={
                "permissions": [
                    {"name": "tours", "type": "view"},
                    {"name": "tours", "type": "export", "description": "Download tours"},
                    {"name": "users:view"},
                ]
            },
        )
        assert response.status_code == 201
        assert response.json() == {"created": ["tours:export", "tours:view"], "skipped": ["users:view"]}
        db.expire_all()
        assert db.query(Permission).filter(Permission.name == "tours:export").one().description == "Download tours"

    def test_bulk_rejects_bad_names(self, admin_client, db) -> None:
        response = admin_client.post(
            "/permissions/bulk",
            json={"permissions": [{"name": "tours", "type": "view"}, {"name": "nonsense"}]},
        )
        assert response.status_code == 400
        assert db.query(Permission).filter(Permission.name == "tours:view").count() == 0

    def test_update_and_delete(self, admin_client, db) -> None:
        created = admin_client.post("/permissions", json={"name": "tours:view"}).json()
        updated = admin_client.put(f"/permissions/{created['id']}", json={"name": "tours:read"})
        assert updated.status_code == 200
        assert updated.json()["name"] == "tours:read"

        users_view = db.query(Permission).filter(Permission.name == "users:view").one()
        clash = admin_client.put(f"/permissions/{created['id']}", json={"name": users_view.name})
        assert clash.status_code == 409

        assert admin_client.delete(f"/permissions/{created['id']}").status_code == 204
        assert admin_client.delete(f"/permissions/{created['id']}").status_code == 404

    def test_delete_revokes_from_roles(self, admin_client, make_role, db) -> None:
        role = make_role("temp", "tours:view")
        perm = db.query(Permission).filter(Permission.name == "tours:view").one()
        assert admin_client.delete(f"/permissions/{perm.id}").status_code == 204
        db.expire_all()
        assert db.query(RolePermission).filter(RolePermission.role_id == role.id).count() == 0


class TestRenameRace:
    """A rival commit can take the name between the clash check and our commit."""

    @pytest.fixture
    def losing_commit(self, app, session_factory):
        def _get_db():
            session = session_factory()

            def _commit():
                raise IntegrityError("UPDATE permissions", {}, Exception("Duplicate entry"))

            session.commit = _commit
            try:
                yield session
            finally:
                session.close()

        app.dependency_overrides[get_db] = _get_db

    def test_update_maps_to_conflict(self, admin_client, db, losing_commit) -> None:
        perm = db.query(Permission).filter(Permission.name == "users:view").one()
        response = admin_client.put(f"/permissions/{perm.id}", json={"name": "users:browse"})
        assert response.status_code == 409
        db.expire_all()
        assert db.get(Permission, perm.id).name == "users:view"

    def test_bulk_maps_to_conflict(self, admin_client, db, losing_commit) -> None:
        response = admin_client.post("/permissions/bulk", json={"permissions": [{"name": "tours", "type": "view"}]})
        assert response.status_code == 409
        assert db.query(Permission).filter(Permission.name == "tours:view").count() == 0
