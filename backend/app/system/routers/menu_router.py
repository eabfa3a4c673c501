"""
菜单管理 API 路由
前缀: /system/menus
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.security import permissions as P
from app.security.auth import get_permission_provider, get_principal, require_permission
from app.system.schemas import MenuCreate, MenuUpdate, MenuResponse
from app.system.services.menu_service import MenuService
from core.security.context import Principal
from core.security.errors import NotFoundError
from core.security.permission import IPermissionProvider

router = APIRouter(prefix="/system/menus", tags=["菜单管理"])


@router.get("", response_model=List[MenuResponse])
def list_menus(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.MENU_LIST)),
):
    """获取菜单列表（非超级管理员只看到已授权菜单）"""
    service = MenuService(db)
    return service.get_menus(include_inactive=include_inactive, principal=principal)


@router.get("/tree")
def get_menu_tree(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.MENU_LIST)),
):
    """获取菜单树（含按钮）"""
    service = MenuService(db)
    return service.get_menu_tree(include_buttons=True, principal=principal)


@router.get("/tree-select")
def get_menu_tree_select(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.MENU_LIST, P.ROLE_EDIT)),
):
    """获取菜单下拉树"""
    service = MenuService(db)
    return service.get_menu_tree_select(principal)


@router.get("/user")
def get_user_menus(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """获取当前用户的导航菜单"""
    service = MenuService(db)
    return service.get_user_menu_tree(principal)


@router.post("", response_model=MenuResponse, status_code=201)
def create_menu(
    data: MenuCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.MENU_ADD)),
):
    """创建菜单"""
    service = MenuService(db)
    try:
        menu = service.create_menu(**data.model_dump())
        db.commit()
        db.refresh(menu)
        return menu
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.put("/{menu_id}", response_model=MenuResponse)
def update_menu(
    menu_id: int,
    data: MenuUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.MENU_EDIT)),
    provider: IPermissionProvider = Depends(get_permission_provider),
):
    """更新菜单（权限标识、状态变化会影响已授权角色，提交后清空权限缓存）"""
    service = MenuService(db)
    try:
        menu = service.update_menu(menu_id, **data.model_dump(exclude_unset=True))
        db.commit()
        db.refresh(menu)
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    provider.invalidate_all()
    return menu


@router.delete("/{menu_id}", status_code=204)
def delete_menu(
    menu_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(P.MENU_REMOVE)),
):
    """删除菜单（存在子菜单或已分配给角色时拒绝）"""
    service = MenuService(db)
    try:
        service.delete_menu(menu_id)
        db.commit()
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
