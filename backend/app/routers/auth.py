"""
认证路由
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.security.auth import (
    create_access_token, get_current_user, get_permission_provider, get_principal,
)
from app.system.schemas import LoginRequest, LoginResponse, UserInfoResponse, UserResponse
from app.system.services.permission_service import PermissionService
from app.system.services.user_service import UserService
from core.security.context import Principal
from core.security.data_scope import highest_data_scope
from core.security.permission import IPermissionProvider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["认证"])


@router.post("/login", response_model=LoginResponse)
def login(
    data: LoginRequest,
    db: Session = Depends(get_db),
    provider: IPermissionProvider = Depends(get_permission_provider),
):
    """用户登录：校验密码，重新聚合并缓存权限，签发 token"""
    user = UserService(db).authenticate(data.username, data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="用户名或密码错误"
        )
    principal = PermissionService(db).build_principal(user)
    provider.refresh(principal)
    logger.info(f"User {user.username} logged in")
    return LoginResponse(
        access_token=create_access_token(user.id),
        user_id=user.id,
        username=user.username,
    )


@router.get("/me", response_model=UserInfoResponse)
def get_current_user_info(
    current_user=Depends(get_current_user),
    principal: Principal = Depends(get_principal),
    provider: IPermissionProvider = Depends(get_permission_provider),
):
    """获取当前用户信息、角色标识与权限标识"""
    perm_set = provider.get_permission_set(principal)
    return UserInfoResponse(
        user=UserResponse.model_validate(current_user),
        roles=sorted(perm_set.role_keys),
        permissions=sorted(perm_set.permissions),
        data_scope=highest_data_scope(principal).value,
    )
