"""Permission names and the per-request permission resolver."""

import pytest

from core.permissions import PermissionName, PermissionResolver, RequestContext, RoutePermission
from models import UserRole
from repository import Repository


class TestPermissionName:
    def test_parse(self) -> None:
        assert PermissionName.parse("user-roles:assign") == ("user-roles", "assign")

    def test_str(self) -> None:
        assert str(PermissionName("users", "view")) == "users:view"

    @pytest.mark.parametrize("name", ["", "users", ":view", "users:", "users:view:extra", "1users:view"])
    def test_rejects_malformed(self, name: str) -> None:
        with pytest.raises(ValueError):
            PermissionName.parse(name)

    def test_every_route_permission_parses(self) -> None:
        for perm in RoutePermission:
            assert str(perm.parsed) == perm.value


class TestResolver:
    def test_union_of_roles(self, db, make_user, make_role, assign) -> None:
        user = make_user("a@x.com")
        assign(user, make_role("viewer", "users:view", "roles:view"))
        assign(user, make_role("editor", "users:view", "users:update"))

        resolver = PermissionResolver(Repository(db), RequestContext())
        assert resolver.resolve(user.id) == {"users:view", "roles:view", "users:update"}

    def test_removing_a_role_shrinks_the_set(self, db, make_user, make_role, assign) -> None:
        user = make_user("f@x.com")
        reader = make_role("reader", "a:read")
        writer = make_role("writer", "b:write")
        assign(user, reader)
        assign(user, writer)
        repo = Repository(db)
        assert PermissionResolver(repo, RequestContext()).resolve(user.id) == {"a:read", "b:write"}

        db.query(UserRole).filter(UserRole.user_id == user.id, UserRole.role_id == writer.id).delete()
        db.commit()
        assert PermissionResolver(repo, RequestContext()).resolve(user.id) == {"a:read"}

    def test_no_roles_no_permissions(self, db, make_user) -> None:
        user = make_user("b@x.com")
        resolver = PermissionResolver(Repository(db), RequestContext())
        assert resolver.resolve(user.id) == frozenset()
        assert resolver.has_permission(user, "users:view") is False

    def test_unknown_user_resolves_empty(self, db) -> None:
        resolver = PermissionResolver(Repository(db), RequestContext())
        assert resolver.resolve(9999) == frozenset()

    def test_has_permission_accepts_enum(self, db, make_user, make_role, assign) -> None:
        user = make_user("c@x.com")
        assign(user, make_role("r", "menus:view"))
        resolver = PermissionResolver(Repository(db), RequestContext())
        assert resolver.has_permission(user, RoutePermission.MENUS_VIEW) is True
        assert resolver.has_permission(user, RoutePermission.MENUS_DELETE) is False

    def test_memoised_within_one_context(self, db, make_user, make_role, assign) -> None:
        user = make_user("d@x.com")
        assign(user, make_role("r", "users:view"))

        class CountingRepository(Repository):
            calls = 0

            def find_roles_for_user(self, user_id):
                CountingRepository.calls += 1
                return super().find_roles_for_user(user_id)

        context = RequestContext()
        resolver = PermissionResolver(CountingRepository(db), context)
        resolver.resolve(user.id)
        resolver.has_permission(user, "users:view")
        PermissionResolver(CountingRepository(db), context).resolve(user.id)
        assert CountingRepository.calls == 1

    def test_new_context_sees_role_changes(self, db, make_user, make_role, assign) -> None:
        user = make_user("e@x.com")
        repo = Repository(db)
        assert PermissionResolver(repo, RequestContext()).resolve(user.id) == frozenset()

        assign(user, make_role("r", "roles:view"))
        assert PermissionResolver(repo, RequestContext()).resolve(user.id) == {"roles:view"}
