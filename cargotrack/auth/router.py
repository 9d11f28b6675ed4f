from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..errors import AuthorizationError
from ..models.models import User
from ..schemas.auth import LoginRequest, LoginResponse, MeResponse, UserResponse
from ..schemas.common import MessageResponse
from ..services import users as user_service
from ..services.log_store import write_log
from .security import create_access_token, get_current_user, get_request_context, RequestContext


router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    try:
        user = user_service.login_or_provision(db, req.email, req.name)
    except AuthorizationError:
        structlog.get_logger().warning("login_denied", email=req.email)
        raise
    write_log("info", "server", f"User logged in: {user.email}", user_id=str(user.id))
    return LoginResponse(user=UserResponse.model_validate(user), access_token=create_access_token(str(user.id)))


@router.post("/logout", response_model=MessageResponse)
def logout(ctx: RequestContext = Depends(get_request_context)):
    # Tokens are stateless; the client drops its copy
    write_log("info", "server", "User logged out", **ctx.log_fields())
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)):
    return MeResponse(user=UserResponse.model_validate(user))
