"""
core.security 单元测试
数据范围谓词的合并、编译、内存判断，以及权限集合的纯函数判断
"""
import pytest
from sqlalchemy import Column, Integer, MetaData, Table, create_engine, select

from core.security.context import Principal, RoleGrant, split_tokens
from core.security.data_scope import (
    ALWAYS_FALSE, UNRESTRICTED, AnyOf, DataScope, DeptEquals, DeptIn, UserEquals,
    combine_any, compile_predicate, highest_data_scope, matches,
)
from core.security.permission import (
    PermissionSet, has_any_permissions, has_any_roles, has_permission, has_role,
    lacks_permission,
)

rows = Table(
    "rows", MetaData(),
    Column("id", Integer, primary_key=True),
    Column("dept_id", Integer),
    Column("owner_id", Integer),
)

# (dept_id, owner_id)
ROWS = [(1, 5), (10, 6), (2, 7), (None, 7), (3, None)]


class TestDataScopeEnum:

    def test_parse(self):
        assert DataScope.parse("dept_and_child") == DataScope.DEPT_AND_CHILD
        assert DataScope.parse(DataScope.SELF) == DataScope.SELF
        assert DataScope.parse(" ALL ") == DataScope.ALL

    def test_parse_unknown(self):
        assert DataScope.parse("EVERYTHING") is None
        assert DataScope.parse(None) is None

    def test_labels(self):
        assert DataScope.ALL.label == "全部数据权限"
        assert DataScope.CUSTOM.label == "自定数据权限"

    def test_priority_order(self):
        ordered = sorted(DataScope, key=lambda s: s.priority)
        assert ordered[0] == DataScope.ALL
        assert ordered[-1] == DataScope.SELF


class TestCombineAny:

    def test_empty_is_always_false(self):
        assert combine_any([]) == ALWAYS_FALSE

    def test_only_false(self):
        assert combine_any([ALWAYS_FALSE, ALWAYS_FALSE]) == ALWAYS_FALSE

    def test_unrestricted_wins(self):
        assert combine_any([DeptEquals(1), UNRESTRICTED, ALWAYS_FALSE]) == UNRESTRICTED

    def test_false_contributes_nothing(self):
        assert combine_any([ALWAYS_FALSE, DeptEquals(3)]) == DeptEquals(3)

    def test_dept_clauses_merge(self):
        combined = combine_any([DeptEquals(1), DeptIn(frozenset({2, 3})), DeptEquals(2)])
        assert combined == DeptIn(frozenset({1, 2, 3}))

    def test_union_with_self(self):
        combined = combine_any([UserEquals(9), DeptEquals(1)])
        assert combined == AnyOf((DeptIn(frozenset({1})), UserEquals(9)))

    def test_order_independent(self):
        a = combine_any([UserEquals(9), DeptEquals(1), DeptEquals(4)])
        b = combine_any([DeptEquals(4), DeptEquals(1), UserEquals(9)])
        assert a == b

    def test_nested_any_of_flattened(self):
        inner = AnyOf((DeptEquals(1), UserEquals(2)))
        assert combine_any([inner, UNRESTRICTED]) == UNRESTRICTED
        assert combine_any([inner]) == combine_any([DeptEquals(1), UserEquals(2)])


class TestCompilePredicate:
    """编译后的 SQL 条件与内存判断 matches 结果一致"""

    @pytest.fixture
    def engine(self):
        engine = create_engine("sqlite:///:memory:")
        rows.metadata.create_all(engine)
        with engine.begin() as conn:
            conn.execute(rows.insert(), [
                {"id": i, "dept_id": dept, "owner_id": owner}
                for i, (dept, owner) in enumerate(ROWS, start=1)
            ])
        return engine

    def visible(self, engine, predicate, owner=True):
        clause = compile_predicate(predicate, rows.c.dept_id, rows.c.owner_id if owner else None)
        with engine.connect() as conn:
            return {r[0] for r in conn.execute(select(rows.c.id).where(clause).order_by(rows.c.id))}

    def expected(self, predicate, owner=True):
        return {
            i for i, (dept, user) in enumerate(ROWS, start=1)
            if matches(predicate, dept, user if owner else None)
        }

    @pytest.mark.parametrize("predicate", [
        UNRESTRICTED,
        ALWAYS_FALSE,
        DeptEquals(1),
        DeptIn(frozenset({1, 10})),
        DeptIn(frozenset()),
        UserEquals(7),
        AnyOf((DeptEquals(2), UserEquals(7))),
        AnyOf(()),
    ])
    def test_sql_agrees_with_matches(self, engine, predicate):
        assert self.visible(engine, predicate) == self.expected(predicate)

    def test_user_without_owner_column_matches_nothing(self, engine):
        assert self.visible(engine, UserEquals(7), owner=False) == set()

    def test_unrestricted_and_false(self, engine):
        assert self.visible(engine, UNRESTRICTED) == {1, 2, 3, 4, 5}
        assert self.visible(engine, ALWAYS_FALSE) == set()

    def test_dept_in_is_whole_value(self, engine):
        assert self.visible(engine, DeptIn(frozenset({1}))) == {1}

    def test_unknown_predicate(self):
        with pytest.raises(TypeError):
            compile_predicate(object(), rows.c.dept_id)


class TestMatches:

    def test_basic(self):
        assert matches(UNRESTRICTED, None)
        assert not matches(ALWAYS_FALSE, 1)
        assert matches(DeptIn(frozenset({1, 2})), 2)
        assert not matches(DeptEquals(1), None)
        assert matches(UserEquals(7), 99, owner_id=7)

    def test_any_of(self):
        predicate = AnyOf((DeptEquals(1), UserEquals(7)))
        assert matches(predicate, 1)
        assert matches(predicate, 2, owner_id=7)
        assert not matches(predicate, 2, owner_id=8)


class TestHighestDataScope:

    def test_super_admin(self):
        assert highest_data_scope(Principal(id=1, is_super_admin=True)) == DataScope.ALL

    def test_no_roles(self):
        assert highest_data_scope(Principal(id=1)) == DataScope.SELF

    def test_widest_active_role(self):
        principal = Principal(id=1, roles=(
            RoleGrant(id=1, key="a", data_scope="DEPT"),
            RoleGrant(id=2, key="b", data_scope="ALL", is_active=False),
            RoleGrant(id=3, key="c", data_scope="CUSTOM"),
        ))
        assert highest_data_scope(principal) == DataScope.CUSTOM


class TestContext:

    def test_split_tokens(self):
        assert split_tokens(" a:b , ,c:d,") == ("a:b", "c:d")
        assert split_tokens(None) == ()

    def test_role_holds(self):
        role = RoleGrant(id=1, key="r", data_scope="DEPT", permissions=frozenset({"system:user:list"}))
        assert role.holds("system:user:list")
        assert role.holds("system:dept:list,system:user:list")
        assert not role.holds("system:dept:list")
        assert role.holds(None)

    def test_wildcard_holds_everything(self):
        role = RoleGrant(id=1, key="r", data_scope="ALL", permissions=frozenset({"*:*:*"}))
        assert role.holds("system:role:remove")

    def test_active_roles(self):
        principal = Principal(id=1, roles=(
            RoleGrant(id=1, key="on", data_scope="DEPT"),
            RoleGrant(id=2, key="off", data_scope="DEPT", is_active=False),
        ))
        assert [r.key for r in principal.active_roles] == ["on"]
        assert principal.to_dict()["roles"] == ["on", "off"]


class TestPermissionChecks:

    perms = PermissionSet(frozenset({"system:user:list", "system:user:add"}), frozenset({"common"}))

    def test_has_permission(self):
        assert has_permission(self.perms, "system:user:list")
        assert has_permission(self.perms, " system:user:add ")
        assert not has_permission(self.perms, "system:role:list")
        assert not has_permission(self.perms, "")
        assert lacks_permission(self.perms, "system:role:list")

    def test_wildcard(self):
        perms = PermissionSet(frozenset({"*:*:*"}))
        assert perms.is_all
        assert has_permission(perms, "anything:at:all")

    def test_any_permissions(self):
        assert has_any_permissions(self.perms, ["system:role:list", "system:user:add"])
        assert not has_any_permissions(self.perms, [])

    def test_roles(self):
        assert has_role(self.perms, "common")
        assert not has_role(self.perms, "auditor")
        assert has_any_roles(self.perms, ["auditor", "common"])

    def test_admin_role_counts_as_every_role(self):
        perms = PermissionSet(role_keys=frozenset({"admin"}))
        assert has_role(perms, "auditor")
        assert not has_role(perms, "")
