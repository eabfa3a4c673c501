"""
组织机构 Service — 部门树 CRUD

部门的祖级路径由 AncestorMaintainer 维护；列表接口按主体的数据范围过滤。
"""
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from core.security.context import Principal
from core.security.errors import NotFoundError, ValidationError
from app.system.models.org import SysDepartment
from app.system.models.rbac import SysRoleDept
from app.system.models.user import SysUser
from app.system.services.ancestor_service import AncestorMaintainer, whole_token_match
from app.system.services.data_scope_resolver import DEPT_LIST_PERMISSION, DeptDataScopeResolver
from app.system.services.tree_builder import build_tree, build_tree_select

logger = logging.getLogger(__name__)


class OrgService:
    def __init__(self, db: Session):
        self.db = db
        self.maintainer = AncestorMaintainer(db, SysDepartment, label="部门")

    # =============== Queries ===============

    def get_departments(self, principal: Optional[Principal] = None, name: Optional[str] = None,
                        is_active: Optional[bool] = None) -> List[SysDepartment]:
        """部门列表；传入 principal 时按其数据范围过滤"""
        query = self.db.query(SysDepartment)
        if name:
            query = query.filter(SysDepartment.name.contains(name))
        if is_active is not None:
            query = query.filter(SysDepartment.is_active == is_active)
        if principal is not None:
            query = DeptDataScopeResolver(self.db).filter_query(
                query, principal, DEPT_LIST_PERMISSION, SysDepartment.id
            )
        return query.order_by(SysDepartment.parent_id, SysDepartment.sort_order, SysDepartment.id).all()

    def get_department_by_id(self, dept_id: int) -> Optional[SysDepartment]:
        return self.db.query(SysDepartment).filter(SysDepartment.id == dept_id).first()

    def _require_department(self, dept_id: int) -> SysDepartment:
        dept = self.get_department_by_id(dept_id)
        if not dept:
            raise NotFoundError("部门不存在", "sys_department", dept_id)
        return dept

    def get_parent_candidates(self, dept_id: int, principal: Optional[Principal] = None) -> List[SysDepartment]:
        """可作为 dept_id 新上级的部门：排除自身及其子孙"""
        self._require_department(dept_id)
        excluded = self.maintainer.descendant_ids(dept_id) | {dept_id}
        return [d for d in self.get_departments(principal) if d.id not in excluded]

    def get_department_tree(self, principal: Optional[Principal] = None,
                            is_active: Optional[bool] = None) -> List[Dict]:
        """Build department tree from the scoped flat list"""
        return build_tree(self.get_departments(principal, is_active=is_active))

    def get_department_tree_select(self, principal: Optional[Principal] = None) -> List[Dict]:
        return build_tree_select(self.get_departments(principal))

    # =============== Mutations ===============

    def _check_unique_name(self, name: str, parent_id: Optional[int], exclude_id: Optional[int] = None) -> None:
        query = self.db.query(SysDepartment).filter(SysDepartment.name == name)
        if parent_id:
            query = query.filter(SysDepartment.parent_id == parent_id)
        else:
            query = query.filter(SysDepartment.parent_id.is_(None))
        if exclude_id is not None:
            query = query.filter(SysDepartment.id != exclude_id)
        if query.first():
            raise ValidationError(f"部门名称 '{name}' 已存在")

    def create_department(
        self, name: str, parent_id: Optional[int] = None, leader: str = "",
        phone: str = "", email: str = "", sort_order: int = 0, is_active: bool = True,
    ) -> SysDepartment:
        if parent_id:
            parent = self._require_department(parent_id)
            if not parent.is_active:
                raise ValidationError("上级部门已停用，不允许新增")
        self._check_unique_name(name, parent_id)

        dept = SysDepartment(
            name=name, parent_id=parent_id or None, leader=leader, phone=phone,
            email=email, sort_order=sort_order, is_active=is_active,
        )
        return self.maintainer.insert(dept)

    def update_department(self, dept_id: int, **kwargs) -> SysDepartment:
        dept = self._require_department(dept_id)

        new_parent_id = dept.parent_id
        parent_changed = False
        if "parent_id" in kwargs:
            new_parent_id = kwargs.pop("parent_id") or None
            parent_changed = new_parent_id != dept.parent_id
        if new_parent_id == dept_id:
            raise ValidationError("上级部门不能是自己")

        name = kwargs.get("name", dept.name)
        if name != dept.name or parent_changed:
            self._check_unique_name(name, new_parent_id, exclude_id=dept_id)

        if kwargs.get("is_active") is False and dept.is_active:
            active_children = (
                self.db.query(SysDepartment)
                .filter(whole_token_match(SysDepartment, dept_id), SysDepartment.is_active == True)
                .count()
            )
            if active_children > 0:
                raise ValidationError("该部门包含未停用的子部门")

        try:
            for key, value in kwargs.items():
                if key in ("id", "ancestors", "_ancestors"):
                    continue
                if hasattr(dept, key):
                    setattr(dept, key, value)

            if parent_changed:
                self.maintainer.reparent(dept_id, new_parent_id, commit=False)
            elif dept.is_active:
                self.maintainer.reactivate_ancestors(dept)

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(dept)
        return dept

    def move_department(self, dept_id: int, new_parent_id: Optional[int]) -> SysDepartment:
        return self.update_department(dept_id, parent_id=new_parent_id)

    def delete_department(self, dept_id: int) -> bool:
        dept = self._require_department(dept_id)
        children = self.db.query(SysDepartment).filter(
            SysDepartment.parent_id == dept_id
        ).count()
        if children > 0:
            raise ValidationError("存在下级部门，不允许删除")
        users = self.db.query(SysUser).filter(SysUser.dept_id == dept_id).count()
        if users > 0:
            raise ValidationError("部门存在用户，不允许删除")

        self.db.query(SysRoleDept).filter(SysRoleDept.dept_id == dept_id).delete()
        self.db.delete(dept)
        self.db.commit()
        logger.info(f"Deleted department id={dept_id}")
        return True
