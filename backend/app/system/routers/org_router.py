"""
组织机构 API 路由
前缀: /system/departments
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.security import permissions as P
from app.security.auth import require_permission
from app.system.schemas import DepartmentCreate, DepartmentUpdate, DepartmentResponse
from app.system.services.data_scope_resolver import DeptDataScopeResolver
from app.system.services.org_service import OrgService
from core.security.context import Principal
from core.security.errors import NotFoundError

dept_router = APIRouter(prefix="/system/departments", tags=["组织机构-部门"])


@dept_router.get("", response_model=List[DepartmentResponse])
def list_departments(
    name: Optional[str] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.DEPT_LIST)),
):
    """获取部门列表（扁平，按数据范围过滤）"""
    service = OrgService(db)
    return service.get_departments(principal, name=name, is_active=is_active)


@dept_router.get("/tree")
def get_department_tree(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.DEPT_LIST)),
):
    """获取部门树形结构"""
    service = OrgService(db)
    return service.get_department_tree(principal)


@dept_router.get("/tree-select")
def get_department_tree_select(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.DEPT_LIST, P.USER_LIST)),
):
    """获取部门下拉树"""
    service = OrgService(db)
    return service.get_department_tree_select(principal)


@dept_router.get("/{dept_id}/parent-candidates", response_model=List[DepartmentResponse])
def list_parent_candidates(
    dept_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.DEPT_LIST)),
):
    """可选的上级部门（排除自身及下级）"""
    service = OrgService(db)
    try:
        return service.get_parent_candidates(dept_id, principal)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@dept_router.get("/{dept_id}", response_model=DepartmentResponse)
def get_department(
    dept_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.DEPT_QUERY)),
):
    """获取部门详情"""
    service = OrgService(db)
    dept = service.get_department_by_id(dept_id)
    if not dept:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="部门不存在")
    DeptDataScopeResolver(db).check_dept_data_scope(principal, dept_id)
    return dept


@dept_router.post("", response_model=DepartmentResponse, status_code=status.HTTP_201_CREATED)
def create_department(
    data: DepartmentCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.DEPT_ADD)),
):
    """创建部门"""
    service = OrgService(db)
    if data.parent_id:
        DeptDataScopeResolver(db).check_dept_data_scope(principal, data.parent_id)
    try:
        return service.create_department(**data.model_dump())
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@dept_router.put("/{dept_id}", response_model=DepartmentResponse)
def update_department(
    dept_id: int,
    data: DepartmentUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.DEPT_EDIT)),
):
    """更新部门（修改上级部门时同步改写下级的祖级路径）"""
    service = OrgService(db)
    resolver = DeptDataScopeResolver(db)
    updates = data.model_dump(exclude_unset=True)
    try:
        if service.get_department_by_id(dept_id):
            resolver.check_dept_data_scope(principal, dept_id)
        if updates.get("parent_id") and service.get_department_by_id(updates["parent_id"]):
            resolver.check_dept_data_scope(principal, updates["parent_id"])
        return service.update_department(dept_id, **updates)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@dept_router.delete("/{dept_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_department(
    dept_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.DEPT_REMOVE)),
):
    """删除部门（存在下级部门或用户时拒绝）"""
    service = OrgService(db)
    try:
        if service.get_department_by_id(dept_id):
            DeptDataScopeResolver(db).check_dept_data_scope(principal, dept_id)
        service.delete_department(dept_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
