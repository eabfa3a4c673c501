"""
树构建测试（纯函数，使用字典输入）
"""
import random

from app.system.services.tree_builder import build_tree, build_tree_select, flatten, prune_empty


def node(id, parent_id=None, name=None, is_active=True, **extra):
    return {"id": id, "parent_id": parent_id, "name": name or f"n{id}", "is_active": is_active, **extra}


NODES = [
    node(1),
    node(2, 1),
    node(3, 1),
    node(4, 2),
    node(5),
]


class TestBuildTree:

    def test_nesting(self):
        tree = build_tree(NODES)
        assert [n["id"] for n in tree] == [1, 5]
        assert [n["id"] for n in tree[0]["children"]] == [2, 3]
        assert tree[0]["children"][0]["children"][0]["id"] == 4
        assert tree[1]["children"] == []

    def test_preserves_input_order(self):
        ordered = [node(1), node(3, 1), node(2, 1)]
        tree = build_tree(ordered)
        assert [n["id"] for n in tree[0]["children"]] == [3, 2]

    def test_parent_outside_input_is_root(self):
        subset = [node(2, 1), node(4, 2)]
        tree = build_tree(subset)
        assert [n["id"] for n in tree] == [2]
        assert tree[0]["children"][0]["id"] == 4

    def test_self_parent_is_root(self):
        tree = build_tree([node(7, 7)])
        assert [n["id"] for n in tree] == [7]

    def test_empty(self):
        assert build_tree([]) == []

    def test_custom_fields(self):
        tree = build_tree(NODES[:2], fields=lambda n: {"key": n["id"]})
        assert tree == [{"key": 1, "children": [{"key": 2, "children": []}]}]

    def test_cycle_nodes_promoted_to_roots(self):
        cyclic = [node(1), node(2, 3), node(3, 2)]
        tree = build_tree(cyclic)
        ids = [n["id"] for n in flatten(tree)]
        assert sorted(ids) == [1, 2, 3]
        assert len(ids) == 3

    def test_orm_objects_use_to_dict(self, factory):
        root = factory.dept("总公司")
        child = factory.dept("研发部", parent=root)
        tree = build_tree([root, child])
        assert tree[0]["name"] == "总公司"
        assert tree[0]["ancestors"] == "0"
        assert tree[0]["children"][0]["id"] == child.id


class TestBuildTreeSelect:

    def test_projection(self):
        tree = build_tree_select([node(1, name="总公司"), node(2, 1, name="研发部", is_active=False)])
        assert tree == [{
            "id": 1, "label": "总公司", "disabled": False,
            "children": [{"id": 2, "label": "研发部", "disabled": True, "children": []}],
        }]

    def test_label_field(self):
        tree = build_tree_select([node(1, title="T")], label_field="title")
        assert tree[0]["label"] == "T"


class TestFlatten:

    def test_preorder(self):
        assert [n["id"] for n in flatten(build_tree(NODES))] == [1, 2, 4, 3, 5]

    def test_flatten_is_permutation_of_input(self):
        shuffled = list(NODES)
        random.Random(7).shuffle(shuffled)
        flat = flatten(build_tree(shuffled))
        assert sorted(n["id"] for n in flat) == [1, 2, 3, 4, 5]
        assert all("children" not in n for n in flat)

    def test_rebuild_from_flat_is_stable(self):
        tree = build_tree(NODES)
        assert build_tree(flatten(tree)) == tree


class TestPruneEmpty:

    def test_drops_empty_directories(self):
        nodes = [
            node(1, menu_type="directory"),
            node(2, 1, menu_type="menu"),
            node(3, menu_type="directory"),
            node(4, 3, menu_type="directory"),
        ]
        tree = prune_empty(build_tree(nodes), lambda n: n["menu_type"] == "directory")
        assert [n["id"] for n in tree] == [1]
        assert [n["id"] for n in tree[0]["children"]] == [2]
