"""
认证与授权模块

JWT 认证 + 基于 SysRole / SysRoleMenu 的动态 RBAC。
权限提供者在应用启动时挂在 app.state.permission_provider，通过依赖注入取用。
"""
import bcrypt
import logging
from datetime import datetime, timedelta, UTC
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from core.security.context import Principal
from core.security.permission import IPermissionProvider

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_password_hash(password: str) -> str:
    """密码哈希"""
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """验证密码"""
    return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))


def create_access_token(user_id: int, expires_minutes: Optional[int] = None) -> str:
    """创建 JWT token"""
    minutes = expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    expire = datetime.now(UTC) + timedelta(minutes=minutes)
    to_encode = {"sub": str(user_id), "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    """解码 JWT token"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return payload
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="无效的认证凭证"
        )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
):
    """获取当前登录用户"""
    from app.system.models.user import SysUser

    payload = decode_token(credentials.credentials)
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="无效的认证凭证"
        )

    user = db.query(SysUser).filter(SysUser.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="用户不存在"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="账号已停用"
        )

    return user


async def get_principal(
    current_user=Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Principal:
    """构建请求期间的 Principal 快照（角色、部门、角色持有的权限）"""
    from app.system.services.permission_service import PermissionService
    return PermissionService(db).build_principal(current_user)


def get_permission_provider(request: Request) -> IPermissionProvider:
    """从 app.state 取权限提供者"""
    provider = getattr(request.app.state, "permission_provider", None)
    if provider is None:
        raise RuntimeError("permission provider is not initialised")
    return provider


def require_permission(*permission_codes: str):
    """动态权限检查依赖 — 支持多个权限码（OR 逻辑），超级管理员始终通过"""
    async def permission_checker(
        principal: Principal = Depends(get_principal),
        provider: IPermissionProvider = Depends(get_permission_provider),
    ) -> Principal:
        if provider.has_any_permissions(principal, permission_codes):
            return principal
        logger.info(f"{principal!r} lacks any of {permission_codes}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"缺少权限: {', '.join(permission_codes)}"
        )
    return permission_checker


def require_role(*role_keys: str):
    """角色检查依赖 — 任一角色即可（admin 角色视为拥有全部角色）"""
    async def role_checker(
        principal: Principal = Depends(get_principal),
        provider: IPermissionProvider = Depends(get_permission_provider),
    ) -> Principal:
        if any(provider.has_role(principal, key) for key in role_keys):
            return principal
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="权限不足"
        )
    return role_checker
