"""
用户管理 Service — 用户 CRUD、登录校验与按数据范围过滤的用户列表
"""
from typing import List, Optional

from sqlalchemy.orm import Session

from core.security.context import Principal
from core.security.errors import NotFoundError, ValidationError
from app.security.auth import get_password_hash, verify_password
from app.system.models.org import SysDepartment
from app.system.models.rbac import SysUserRole
from app.system.models.user import SysUser
from app.system.services.ancestor_service import descendant_ids
from app.system.services.data_scope_resolver import USER_LIST_PERMISSION, DeptDataScopeResolver


class UserService:
    """用户管理服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_users(self, principal: Optional[Principal] = None, dept_id: Optional[int] = None,
                  username: Optional[str] = None, is_active: Optional[bool] = None) -> List[SysUser]:
        """
        用户列表

        dept_id 包含该部门及其全部下级部门的用户；传入 principal 时再按数据范围过滤。
        """
        q = self.db.query(SysUser)
        if dept_id is not None:
            dept_ids = descendant_ids(self.db, SysDepartment, dept_id) | {dept_id}
            q = q.filter(SysUser.dept_id.in_(sorted(dept_ids)))
        if username:
            q = q.filter(SysUser.username.contains(username))
        if is_active is not None:
            q = q.filter(SysUser.is_active == is_active)
        if principal is not None:
            q = DeptDataScopeResolver(self.db).filter_query(
                q, principal, USER_LIST_PERMISSION, SysUser.dept_id, SysUser.id
            )
        return q.order_by(SysUser.id).all()

    def get_user_by_id(self, user_id: int) -> Optional[SysUser]:
        return self.db.query(SysUser).filter(SysUser.id == user_id).first()

    def get_user_by_username(self, username: str) -> Optional[SysUser]:
        return self.db.query(SysUser).filter(SysUser.username == username).first()

    def _require_user(self, user_id: int) -> SysUser:
        user = self.get_user_by_id(user_id)
        if not user:
            raise NotFoundError(f"用户 ID {user_id} 不存在", "sys_user", user_id)
        return user

    def _check_dept(self, dept_id: Optional[int]) -> None:
        if dept_id is None:
            return
        if not self.db.query(SysDepartment.id).filter(SysDepartment.id == dept_id).first():
            raise NotFoundError(f"部门 ID {dept_id} 不存在", "sys_department", dept_id)

    def create_user(self, username: str, password: str, nickname: str = "",
                    dept_id: Optional[int] = None, is_super_admin: bool = False,
                    is_active: bool = True) -> SysUser:
        if self.get_user_by_username(username):
            raise ValidationError(f"用户名 '{username}' 已存在")
        self._check_dept(dept_id)

        user = SysUser(
            username=username, nickname=nickname or username,
            password_hash=get_password_hash(password), dept_id=dept_id,
            is_super_admin=is_super_admin, is_active=is_active,
        )
        self.db.add(user)
        self.db.flush()
        return user

    def update_user(self, user_id: int, **kwargs) -> SysUser:
        user = self._require_user(user_id)
        if user.is_super_admin and kwargs.get("is_active") is False:
            raise ValidationError("不允许停用超级管理员用户")

        if "username" in kwargs and kwargs["username"] != user.username:
            if self.get_user_by_username(kwargs["username"]):
                raise ValidationError(f"用户名 '{kwargs['username']}' 已存在")
        if "dept_id" in kwargs:
            self._check_dept(kwargs["dept_id"])

        password = kwargs.pop("password", None)
        if password:
            user.password_hash = get_password_hash(password)
        for key, value in kwargs.items():
            if key in ("id", "password_hash"):
                continue
            if hasattr(user, key):
                setattr(user, key, value)

        self.db.flush()
        return user

    def delete_user(self, user_id: int) -> None:
        user = self._require_user(user_id)
        if user.is_super_admin:
            raise ValidationError("不允许删除超级管理员用户")

        self.db.query(SysUserRole).filter(SysUserRole.user_id == user_id).delete()
        self.db.delete(user)
        self.db.flush()

    def authenticate(self, username: str, password: str) -> Optional[SysUser]:
        """校验用户名密码，停用用户视为失败"""
        user = self.get_user_by_username(username)
        if not user or not user.is_active:
            return None
        if not verify_password(password, user.password_hash):
            return None
        return user
