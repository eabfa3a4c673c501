"""
系统管理 Pydantic 模型 — API 输入输出验证
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# ---- Department ----

class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="部门名称")
    parent_id: Optional[int] = Field(None, description="上级部门ID，空为根部门")
    leader: str = Field(default="", max_length=50)
    phone: str = Field(default="", max_length=20)
    email: str = Field(default="", max_length=100)
    sort_order: int = Field(default=0)
    is_active: bool = Field(default=True)


class DepartmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    parent_id: Optional[int] = None
    leader: Optional[str] = Field(None, max_length=50)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=100)
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class DepartmentResponse(BaseModel):
    id: int
    name: str
    parent_id: Optional[int] = None
    ancestors: str
    leader: str = ""
    phone: str = ""
    email: str = ""
    sort_order: int
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ---- Menu ----

class MenuCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="菜单名称")
    menu_type: str = Field(default="menu", description="类型: directory|menu|button")
    parent_id: Optional[int] = None
    path: str = Field(default="", max_length=200)
    icon: str = Field(default="", max_length=50)
    component: str = Field(default="", max_length=200)
    perms: str = Field(default="", max_length=500, description="权限标识，多个以逗号分隔")
    is_visible: bool = Field(default=True)
    is_active: bool = Field(default=True)
    sort_order: int = Field(default=0)


class MenuUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    menu_type: Optional[str] = None
    parent_id: Optional[int] = None
    path: Optional[str] = Field(None, max_length=200)
    icon: Optional[str] = Field(None, max_length=50)
    component: Optional[str] = Field(None, max_length=200)
    perms: Optional[str] = Field(None, max_length=500)
    is_visible: Optional[bool] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


class MenuResponse(BaseModel):
    id: int
    name: str
    menu_type: str
    parent_id: Optional[int] = None
    ancestors: str
    path: str = ""
    icon: str = ""
    component: str = ""
    perms: str = ""
    is_visible: bool
    is_active: bool
    sort_order: int

    model_config = {"from_attributes": True}


# ---- Role ----

class RoleCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50, description="角色编码")
    name: str = Field(..., min_length=1, max_length=100, description="角色名称")
    description: str = Field(default="", max_length=500)
    data_scope: str = Field(default="ALL", max_length=20)
    sort_order: int = Field(default=0)
    dept_check_strictly: bool = Field(default=True)
    menu_check_strictly: bool = Field(default=True)
    menu_ids: List[int] = Field(default_factory=list, description="授权菜单ID")


class RoleUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    data_scope: Optional[str] = Field(None, max_length=20)
    sort_order: Optional[int] = None
    dept_check_strictly: Optional[bool] = None
    menu_check_strictly: Optional[bool] = None
    is_active: Optional[bool] = None


class RoleResponse(BaseModel):
    id: int
    code: str
    name: str
    description: str
    data_scope: str
    data_scope_label: str = ""
    sort_order: int
    dept_check_strictly: bool
    menu_check_strictly: bool
    is_system: bool
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RoleMenuAssign(BaseModel):
    menu_ids: List[int] = Field(..., description="菜单ID列表")


class RoleDataScopeAssign(BaseModel):
    data_scope: str = Field(..., max_length=20, description="ALL|CUSTOM|DEPT|DEPT_AND_CHILD|SELF")
    dept_ids: List[int] = Field(default_factory=list, description="自定义数据范围的部门ID")
    dept_check_strictly: Optional[bool] = None


# ---- User ----

class UserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=6, max_length=100)
    nickname: str = Field(default="", max_length=50)
    dept_id: Optional[int] = None
    is_active: bool = Field(default=True)
    role_ids: List[int] = Field(default_factory=list)


class UserUpdate(BaseModel):
    nickname: Optional[str] = Field(None, max_length=50)
    password: Optional[str] = Field(None, min_length=6, max_length=100)
    dept_id: Optional[int] = None
    is_active: Optional[bool] = None


class UserResponse(BaseModel):
    id: int
    username: str
    nickname: str = ""
    dept_id: Optional[int] = None
    is_super_admin: bool
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ---- User-Role ----

class UserRoleAssign(BaseModel):
    role_ids: List[int] = Field(..., description="角色ID列表")


class UserRoleResponse(BaseModel):
    user_id: int
    roles: List[RoleResponse] = []


# ---- Auth ----

class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    username: str


class UserInfoResponse(BaseModel):
    user: UserResponse
    roles: List[str] = []
    permissions: List[str] = []
    data_scope: str
