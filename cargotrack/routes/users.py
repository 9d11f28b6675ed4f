import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import AuthorizationError
from ..models.models import User
from ..auth.security import get_current_user, require_permissions, get_request_context, RequestContext
from ..schemas.auth import Permission, UserResponse, UserPermissionsUpdate, UserPermissionsResponse
from ..services import users as user_service
from ..services.permissions import has_permission
from ..services.log_store import write_log


router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("", response_model=List[UserResponse])
def list_users(db: Session = Depends(get_db), _=Depends(require_permissions(Permission.register_perms))):
    return user_service.list_users(db)


@router.get("/{user_id}/permissions", response_model=UserPermissionsResponse)
def get_user_permissions(
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    """Users may always read their own permissions"""
    if me.id != user_id and not has_permission(me, Permission.register_perms):
        raise AuthorizationError("Forbidden", required=[Permission.register_perms.value])
    user = user_service.get_user(db, user_id)
    return UserPermissionsResponse(id=user.id, role=user.role, permissions=user.permissions or [])


@router.put("/{user_id}/permissions", response_model=UserResponse)
def update_user_permissions(
    user_id: uuid.UUID,
    payload: UserPermissionsUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    _=Depends(require_permissions(Permission.register_perms)),
):
    user = user_service.get_user(db, user_id)
    before = list(user.permissions or [])
    user = user_service.set_permissions(db, user, payload.permissions)
    write_log(
        "info",
        "server",
        f"Permissions updated for {user.email}",
        details={"target_user_id": str(user.id), "before": before, "after": user.permissions},
        **ctx.log_fields(),
    )
    return user
