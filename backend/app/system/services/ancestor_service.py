"""
祖级路径维护 — 部门 / 菜单树共用

节点的 ancestors 由本模块在新增(insert)与移动(reparent)时计算写入：
    ancestors(node) = ancestors(parent) + "," + parent.id    有父节点
    ancestors(node) = "0"                                   根节点

子孙节点按「整段 ID」匹配（",{ancestors}," LIKE "%,{id},%"），
部门 1 不会误匹配到路径里的 10。移动节点时所有子孙路径在同一事务中改写，
任何异常都会整体回滚。
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set, Type

from sqlalchemy import literal
from sqlalchemy.orm import Session

from app.system.models.hierarchy import ROOT_ANCESTORS
from core.security.errors import ConsistencyError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def parse_ancestors(path: Optional[str]) -> List[int]:
    """
    解析祖级路径为 ID 列表（含根哨兵 0）

    Raises:
        ValueError: 路径为空、含空段或非数字段
    """
    if not path:
        raise ValueError("empty ancestor path")
    ids = []
    for token in path.split(","):
        token = token.strip()
        if not token or not token.isdigit():
            raise ValueError(f"malformed ancestor token {token!r} in {path!r}")
        ids.append(int(token))
    return ids


def child_ancestors(parent) -> str:
    """根据父节点计算子节点的祖级路径"""
    if parent is None:
        return ROOT_ANCESTORS
    return f"{parent.ancestors},{parent.id}"


def whole_token_match(model, node_id: int):
    """祖级路径中包含 node_id 整段的条件"""
    return (literal(",") + model.ancestors + literal(",")).like(f"%,{int(node_id)},%")


def descendant_ids(db: Session, model, node_id: int) -> Set[int]:
    """node_id 的全部子孙节点 ID（不含自身）"""
    rows = db.query(model.id).filter(whole_token_match(model, node_id)).all()
    return {row[0] for row in rows}


@dataclass
class ReparentResult:
    """移动节点的结果：改写的子孙与因路径漂移被跳过的行"""
    node: object
    old_ancestors: str
    new_ancestors: str
    rewritten: List[int] = field(default_factory=list)
    skipped: List[ConsistencyError] = field(default_factory=list)
    reactivated: List[int] = field(default_factory=list)


class AncestorMaintainer:
    """
    祖级路径维护器

    Args:
        db: 数据库会话
        model: 树形模型（SysDepartment / SysMenu），需包含 HierarchyMixin 字段
        label: 日志与错误信息中的节点名称
    """

    def __init__(self, db: Session, model: Type, label: str = "节点"):
        self.db = db
        self.model = model
        self.label = label

    def _get(self, node_id: int):
        return self.db.query(self.model).filter(self.model.id == node_id).first()

    def _load_parent(self, parent_id: Optional[int]):
        if not parent_id:
            return None
        parent = self._get(parent_id)
        if not parent:
            raise NotFoundError(f"父{self.label} ID {parent_id} 不存在", self.model.__tablename__, parent_id)
        return parent

    # =============== Insert ===============

    def insert(self, node, commit: bool = True):
        """
        新增节点：根据父节点写入祖级路径

        parent_id 为空或 0 时作为根节点。父节点不存在时抛出 NotFoundError，不写入任何数据。
        """
        parent = self._load_parent(node.parent_id)
        if parent is None:
            node.parent_id = None
        node._ancestors = child_ancestors(parent)
        try:
            self.db.add(node)
            self.db.flush()
            if commit:
                self.db.commit()
                self.db.refresh(node)
        except Exception:
            self.db.rollback()
            raise
        logger.debug(f"Inserted {self.model.__tablename__} id={node.id} ancestors={node.ancestors}")
        return node

    # =============== Reparent ===============

    def reparent(self, node_id: int, new_parent_id: Optional[int], commit: bool = True) -> ReparentResult:
        """
        移动节点到新的父节点下，并改写全部子孙的祖级路径

        所有查询与校验在写入前完成；写入阶段任何异常都会回滚整批改写。
        对同一目标重复执行结果不变。

        Raises:
            NotFoundError: 节点或新父节点不存在
            ValidationError: 新父节点是自身或自身的子孙
        """
        node = self._get(node_id)
        if not node:
            raise NotFoundError(f"{self.label} ID {node_id} 不存在", self.model.__tablename__, node_id)
        if new_parent_id and int(new_parent_id) == node.id:
            raise ValidationError(f"上级{self.label}不能是自己")
        new_parent = self._load_parent(new_parent_id)
        if new_parent is not None and new_parent.ancestor_path_contains(node.id):
            raise ValidationError(f"上级{self.label}不能是自己的下级")

        old_ancestors = node.ancestors
        new_ancestors = child_ancestors(new_parent)
        old_prefix = f"{old_ancestors},{node.id}"
        new_prefix = f"{new_ancestors},{node.id}"
        descendants = (
            self.db.query(self.model)
            .filter(whole_token_match(self.model, node.id))
            .all()
        )

        result = ReparentResult(node=node, old_ancestors=old_ancestors, new_ancestors=new_ancestors)
        try:
            node.parent_id = new_parent.id if new_parent is not None else None
            node._ancestors = new_ancestors
            for child in descendants:
                path = child.ancestors
                try:
                    parse_ancestors(path)
                except ValueError as e:
                    logger.warning(f"Skipping {self.model.__tablename__} id={child.id}: {e}")
                    continue
                if path != old_prefix and not path.startswith(old_prefix + ","):
                    err = ConsistencyError(
                        f"{self.model.__tablename__} id={child.id} ancestors {path!r} "
                        f"does not start with {old_prefix!r}",
                        node_id=child.id, ancestors=path,
                    )
                    logger.warning(str(err))
                    result.skipped.append(err)
                    continue
                child._ancestors = new_prefix + path[len(old_prefix):]
                result.rewritten.append(child.id)
            self.db.flush()
            if node.is_active:
                result.reactivated = self.reactivate_ancestors(node)
            if commit:
                self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Reparented {self.model.__tablename__} id={node_id}: {old_ancestors!r} -> {new_ancestors!r}, "
            f"{len(result.rewritten)} descendants rewritten, {len(result.skipped)} skipped"
        )
        return result

    # =============== Reactivation ===============

    def reactivate_ancestors(self, node) -> List[int]:
        """
        启用节点时，将其祖级路径上所有停用的祖先一并启用

        Returns:
            被重新启用的祖先 ID 列表
        """
        ids = []
        for token in (node.ancestors or "").split(","):
            token = token.strip()
            if not token.isdigit():
                logger.warning(
                    f"Skipping ancestor token {token!r} of {self.model.__tablename__} id={node.id}"
                )
                continue
            if int(token) != 0:
                ids.append(int(token))
        if not ids:
            return []

        disabled = (
            self.db.query(self.model)
            .filter(self.model.id.in_(ids), self.model.is_active == False)
            .all()
        )
        for ancestor in disabled:
            ancestor.is_active = True
        if disabled:
            self.db.flush()
            logger.info(
                f"Reactivated {len(disabled)} ancestors of {self.model.__tablename__} id={node.id}"
            )
        return [a.id for a in disabled]

    # =============== Queries ===============

    def descendants(self, node_id: int) -> list:
        return (
            self.db.query(self.model)
            .filter(whole_token_match(self.model, node_id))
            .order_by(self.model.sort_order, self.model.id)
            .all()
        )

    def descendant_ids(self, node_id: int) -> Set[int]:
        return descendant_ids(self.db, self.model, node_id)
