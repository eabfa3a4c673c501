"""
RBAC API 路由 — 角色管理 + 角色授权 + 用户管理与用户角色分配
前缀: /system/roles, /system/users

角色、授权与用户角色变更提交后，同步失效受影响用户的权限缓存。
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.security import permissions as P
from app.security.auth import get_permission_provider, require_permission
from app.system.models.rbac import SysRole
from app.system.schemas import (
    RoleCreate, RoleUpdate, RoleResponse, RoleMenuAssign, RoleDataScopeAssign,
    UserCreate, UserUpdate, UserResponse, UserRoleAssign, UserRoleResponse,
)
from app.system.services.data_scope_resolver import DeptDataScopeResolver
from app.system.services.rbac_service import RoleService
from app.system.services.user_service import UserService
from core.security.context import Principal
from core.security.data_scope import DataScope
from core.security.errors import NotFoundError
from core.security.permission import IPermissionProvider


def _role_response(role: SysRole) -> RoleResponse:
    resp = RoleResponse.model_validate(role)
    scope = DataScope.parse(role.data_scope)
    resp.data_scope_label = scope.label if scope else ""
    return resp


def _invalidate(provider: IPermissionProvider, user_ids) -> None:
    for uid in user_ids:
        provider.invalidate_user(uid)


def _check_role_scope(db: Session, principal: Principal, role_ids) -> None:
    """存在的角色须在主体数据范围内，不存在的交给后续逻辑报 404"""
    service = RoleService(db)
    resolver = DeptDataScopeResolver(db)
    for rid in role_ids:
        if service.get_role_by_id(rid):
            resolver.check_role_data_scope(principal, rid)


# ========== Role Router ==========

role_router = APIRouter(prefix="/system/roles", tags=["角色管理"])


@role_router.get("", response_model=List[RoleResponse])
def list_roles(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.ROLE_LIST)),
):
    """获取角色列表（按持有用户的数据范围过滤）"""
    service = RoleService(db)
    roles = service.get_roles(principal, include_inactive=include_inactive)
    return [_role_response(r) for r in roles]


@role_router.get("/{role_id}", response_model=RoleResponse)
def get_role(
    role_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.ROLE_QUERY)),
):
    """获取角色详情"""
    service = RoleService(db)
    role = service.get_role_by_id(role_id)
    if not role:
        raise HTTPException(status_code=404, detail="角色不存在")
    DeptDataScopeResolver(db).check_role_data_scope(principal, role_id)
    return _role_response(role)


@role_router.post("", response_model=RoleResponse, status_code=201)
def create_role(
    data: RoleCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.ROLE_ADD)),
):
    """创建角色（可同时授权菜单）"""
    service = RoleService(db)
    try:
        role = service.create_role(**data.model_dump())
        db.commit()
        return _role_response(role)
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@role_router.put("/{role_id}", response_model=RoleResponse)
def update_role(
    role_id: int,
    data: RoleUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.ROLE_EDIT)),
    provider: IPermissionProvider = Depends(get_permission_provider),
):
    """更新角色"""
    _check_role_scope(db, principal, [role_id])
    service = RoleService(db)
    try:
        role = service.update_role(role_id, **data.model_dump(exclude_unset=True))
        db.commit()
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    _invalidate(provider, service.get_role_user_ids(role_id))
    return _role_response(role)


@role_router.delete("/{role_id}", status_code=204)
def delete_role(
    role_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.ROLE_REMOVE)),
):
    """删除角色（仍分配给用户时拒绝）"""
    _check_role_scope(db, principal, [role_id])
    service = RoleService(db)
    try:
        service.delete_role(role_id)
        db.commit()
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@role_router.put("/{role_id}/menus")
def assign_role_menus(
    role_id: int,
    data: RoleMenuAssign,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.ROLE_EDIT)),
    provider: IPermissionProvider = Depends(get_permission_provider),
):
    """批量设置角色菜单授权"""
    _check_role_scope(db, principal, [role_id])
    service = RoleService(db)
    try:
        service.assign_menus(role_id, data.menu_ids)
        db.commit()
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    _invalidate(provider, service.get_role_user_ids(role_id))
    return {"message": "菜单授权成功"}


@role_router.put("/{role_id}/data-scope", response_model=RoleResponse)
def assign_role_data_scope(
    role_id: int,
    data: RoleDataScopeAssign,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.ROLE_EDIT)),
    provider: IPermissionProvider = Depends(get_permission_provider),
):
    """设置角色数据范围（CUSTOM 时使用 dept_ids）"""
    _check_role_scope(db, principal, [role_id])
    service = RoleService(db)
    try:
        role = service.auth_data_scope(
            role_id, data.data_scope, data.dept_ids, data.dept_check_strictly,
        )
        db.commit()
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    _invalidate(provider, service.get_role_user_ids(role_id))
    return _role_response(role)


@role_router.get("/{role_id}/menu-tree-select")
def get_role_menu_tree_select(
    role_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.ROLE_QUERY)),
):
    """角色菜单授权树（checked_keys + menus）"""
    _check_role_scope(db, principal, [role_id])
    try:
        return RoleService(db).menu_tree_select(role_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@role_router.get("/{role_id}/dept-tree-select")
def get_role_dept_tree_select(
    role_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.ROLE_QUERY)),
):
    """角色部门授权树（checked_keys + depts）"""
    _check_role_scope(db, principal, [role_id])
    try:
        return RoleService(db).dept_tree_select(role_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


# ========== User Router ==========

user_router = APIRouter(prefix="/system/users", tags=["用户管理"])


@user_router.get("", response_model=List[UserResponse])
def list_users(
    dept_id: Optional[int] = None,
    username: Optional[str] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.USER_LIST)),
):
    """获取用户列表（按数据范围过滤）"""
    service = UserService(db)
    return service.get_users(principal, dept_id=dept_id, username=username, is_active=is_active)


@user_router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.USER_QUERY)),
):
    """获取用户详情"""
    user = UserService(db).get_user_by_id(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="用户不存在")
    DeptDataScopeResolver(db).check_user_data_scope(principal, user_id)
    return user


@user_router.post("", response_model=UserResponse, status_code=201)
def create_user(
    data: UserCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.USER_ADD)),
):
    """创建用户"""
    if data.dept_id is not None:
        DeptDataScopeResolver(db).check_dept_data_scope(principal, data.dept_id)
    _check_role_scope(db, principal, data.role_ids or [])
    service = UserService(db)
    try:
        payload = data.model_dump(exclude={"role_ids"})
        user = service.create_user(**payload)
        if data.role_ids:
            RoleService(db).assign_user_roles(user.id, data.role_ids)
        db.commit()
        db.refresh(user)
        return user
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@user_router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    data: UserUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.USER_EDIT)),
    provider: IPermissionProvider = Depends(get_permission_provider),
):
    """更新用户"""
    service = UserService(db)
    updates = data.model_dump(exclude_unset=True)
    resolver = DeptDataScopeResolver(db)
    if service.get_user_by_id(user_id):
        resolver.check_user_data_scope(principal, user_id)
    if updates.get("dept_id") is not None:
        resolver.check_dept_data_scope(principal, updates["dept_id"])
    try:
        user = service.update_user(user_id, **updates)
        db.commit()
        db.refresh(user)
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    provider.invalidate_user(user_id)
    return user


@user_router.delete("/{user_id}", status_code=204)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.USER_REMOVE)),
    provider: IPermissionProvider = Depends(get_permission_provider),
):
    """删除用户"""
    service = UserService(db)
    if user_id == principal.id:
        raise HTTPException(status_code=400, detail="当前用户不能删除")
    if service.get_user_by_id(user_id):
        DeptDataScopeResolver(db).check_user_data_scope(principal, user_id)
    try:
        service.delete_user(user_id)
        db.commit()
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    provider.invalidate_user(user_id)


@user_router.get("/{user_id}/roles", response_model=UserRoleResponse)
def get_user_roles(
    user_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.USER_QUERY)),
):
    """获取用户的角色"""
    if not UserService(db).get_user_by_id(user_id):
        raise HTTPException(status_code=404, detail="用户不存在")
    DeptDataScopeResolver(db).check_user_data_scope(principal, user_id)
    service = RoleService(db)
    roles = [service.get_role_by_id(rid) for rid in service.get_user_role_ids(user_id)]
    return UserRoleResponse(user_id=user_id, roles=[_role_response(r) for r in roles if r])


@user_router.put("/{user_id}/roles")
def assign_user_roles(
    user_id: int,
    data: UserRoleAssign,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.USER_EDIT)),
    provider: IPermissionProvider = Depends(get_permission_provider),
):
    """设置用户角色（替换），提交后立即失效该用户的权限缓存"""
    if UserService(db).get_user_by_id(user_id):
        DeptDataScopeResolver(db).check_user_data_scope(principal, user_id)
    _check_role_scope(db, principal, data.role_ids)
    service = RoleService(db)
    try:
        service.assign_user_roles(user_id, data.role_ids)
        db.commit()
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    provider.invalidate_user(user_id)
    return {"message": "角色分配成功"}
