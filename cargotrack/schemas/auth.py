import uuid
from enum import Enum
from typing import Optional, List

from pydantic import EmailStr, Field

from .common import ApiModel, UtcDateTime


class UserRole(str, Enum):
    admin = "admin"
    operator = "operator"
    viewer = "viewer"


class Permission(str, Enum):
    dashboard_view = "dashboard:view"
    dashboard_edit = "dashboard:edit"
    simplified_view = "simplified:view"
    complete_view = "complete:view"
    complete_create = "complete:create"
    complete_edit = "complete:edit"
    complete_delete = "complete:delete"
    register_vehicles = "register:vehicles"
    register_materials = "register:materials"
    register_perms = "register:perms"
    report_view = "report:view"
    report_export = "report:export"
    report_management = "report:management"
    logs_view = "logs:view"


class LoginRequest(ApiModel):
    email: EmailStr
    name: str = Field(min_length=1)


class UserResponse(ApiModel):
    id: uuid.UUID
    email: str
    name: str
    role: UserRole
    permissions: List[str] = []
    created_at: Optional[UtcDateTime] = None
    last_login_at: Optional[UtcDateTime] = None


class LoginResponse(ApiModel):
    user: UserResponse
    access_token: str
    token_type: str = "bearer"


class MeResponse(ApiModel):
    user: UserResponse


class UserPermissionsUpdate(ApiModel):
    permissions: List[str]


class UserPermissionsResponse(ApiModel):
    id: uuid.UUID
    role: UserRole
    permissions: List[str]
