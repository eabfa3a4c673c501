"""
树构建 — 由扁平节点列表构建嵌套树（纯函数，无副作用）

输入是已经过滤、排好序的扁平列表，输出保持输入顺序。
一次索引：节点按位置存放，parent_id -> 子节点位置列表；
parent_id 不在输入 ID 集合中的节点即为根（支持部分子集）。
每个位置只挂载一次，输入数据带环时剩余节点按根输出，保证不丢节点。
"""
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

logger = logging.getLogger(__name__)

CHILDREN = "children"


def _field(node, name: str, default=None):
    if isinstance(node, Mapping):
        return node.get(name, default)
    return getattr(node, name, default)


def _node_fields(node) -> Dict[str, Any]:
    if isinstance(node, Mapping):
        data = dict(node)
        data.pop(CHILDREN, None)
        return data
    return node.to_dict()


def _index(nodes: List) -> tuple:
    """返回 (根位置列表, parent_id -> 子位置列表)"""
    ids = {_field(n, "id") for n in nodes}
    children_index: Dict[Any, List[int]] = {}
    roots: List[int] = []
    for pos, node in enumerate(nodes):
        parent_id = _field(node, "parent_id")
        if parent_id is not None and parent_id in ids and parent_id != _field(node, "id"):
            children_index.setdefault(parent_id, []).append(pos)
        else:
            roots.append(pos)
    return roots, children_index


def _assemble(nodes: List, project: Callable[[Any], Dict[str, Any]]) -> List[Dict[str, Any]]:
    roots, children_index = _index(nodes)
    visited = set()

    def attach(pos: int) -> Dict[str, Any]:
        visited.add(pos)
        item = project(nodes[pos])
        item[CHILDREN] = [
            attach(child) for child in children_index.get(_field(nodes[pos], "id"), ())
            if child not in visited
        ]
        return item

    tree = [attach(pos) for pos in roots if pos not in visited]

    # 环中的节点没有根可达，按输入顺序提升为根
    for pos in range(len(nodes)):
        if pos not in visited:
            logger.warning(f"Tree node id={_field(nodes[pos], 'id')} unreachable from any root, promoted to root")
            tree.append(attach(pos))
    return tree


def build_tree(nodes: Iterable, fields: Optional[Callable[[Any], Dict[str, Any]]] = None) -> List[Dict[str, Any]]:
    """
    构建完整树：节点原字段 + children

    Args:
        nodes: ORM 对象（需有 to_dict）或字典
        fields: 自定义字段投影
    """
    project = fields or _node_fields
    return _assemble(list(nodes), project)


def build_tree_select(nodes: Iterable, label_field: str = "name") -> List[Dict[str, Any]]:
    """构建下拉树：{id, label, disabled, children}，停用节点 disabled=True"""
    def project(node) -> Dict[str, Any]:
        return {
            "id": _field(node, "id"),
            "label": _field(node, label_field),
            "disabled": not _field(node, "is_active", True),
        }
    return _assemble(list(nodes), project)


def flatten(tree: Iterable[Mapping]) -> List[Dict[str, Any]]:
    """前序展开嵌套树，去掉 children 字段"""
    flat: List[Dict[str, Any]] = []
    stack = list(reversed(list(tree)))
    while stack:
        item = stack.pop()
        data = dict(item)
        children = data.pop(CHILDREN, None) or []
        flat.append(data)
        stack.extend(reversed(children))
    return flat


def prune_empty(tree: List[Dict[str, Any]], is_container: Callable[[Mapping], bool]) -> List[Dict[str, Any]]:
    """递归剪掉没有子节点的容器节点（如空目录）"""
    pruned = []
    for item in tree:
        item[CHILDREN] = prune_empty(item.get(CHILDREN, []), is_container)
        if is_container(item) and not item[CHILDREN]:
            continue
        pruned.append(item)
    return pruned
