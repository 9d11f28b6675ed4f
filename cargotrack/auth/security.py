import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..errors import AuthenticationError, AuthorizationError
from ..models.models import User
from ..services.permissions import PermissionLike, has_any, has_all


http_bearer = HTTPBearer(auto_error=False)


def create_access_token(user_id: str, ttl_seconds: Optional[int] = None) -> str:
    now = datetime.now(tz=timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl_seconds or settings.jwt_ttl_seconds)).timestamp()),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Session expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")


def _load_user(request: Request, creds: Optional[HTTPAuthorizationCredentials], db: Session) -> Optional[User]:
    if creds is None:
        return None
    payload = decode_token(creds.credentials)
    try:
        user_uuid = uuid.UUID(str(payload.get("sub")))
    except (ValueError, TypeError):
        raise AuthenticationError("Invalid subject")
    # Always read fresh so permission changes apply on the next request
    user = db.query(User).filter(User.id == user_uuid).first()
    if user is None:
        raise AuthenticationError("User not found")
    request.state.user_id = str(user.id)
    return user


def get_current_user(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    db: Session = Depends(get_db),
) -> User:
    user = _load_user(request, creds, db)
    if user is None:
        raise AuthenticationError("Authentication required")
    return user


def get_optional_user(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    db: Session = Depends(get_db),
) -> Optional[User]:
    try:
        return _load_user(request, creds, db)
    except AuthenticationError:
        return None


@dataclass
class RequestContext:
    """Per-request caller information passed explicitly into services and logs."""
    user: Optional[User]
    request_id: Optional[str]
    user_agent: Optional[str]
    ip_address: Optional[str]

    @property
    def user_id(self) -> Optional[str]:
        return str(self.user.id) if self.user is not None else None

    def log_fields(self) -> dict:
        return {
            "user_id": self.user_id,
            "request_id": self.request_id,
            "user_agent": self.user_agent,
            "ip_address": self.ip_address,
        }


def _context(request: Request, user: Optional[User]) -> RequestContext:
    return RequestContext(
        user=user,
        request_id=getattr(request.state, "request_id", None),
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
    )


def get_request_context(request: Request, user: User = Depends(get_current_user)) -> RequestContext:
    return _context(request, user)


def get_anonymous_context(request: Request, user: Optional[User] = Depends(get_optional_user)) -> RequestContext:
    return _context(request, user)


def require_permissions(*required_permissions: PermissionLike):
    """
    Require at least one of the specified permissions (OR logic).
    Admins always pass.
    """
    def _dep(user: User = Depends(get_current_user)):
        if not has_any(user, required_permissions):
            raise AuthorizationError("Forbidden", required=[getattr(p, "value", p) for p in required_permissions])
        return user

    return _dep


def require_all_permissions(*required_permissions: PermissionLike):
    """Require every listed permission (AND logic)."""
    def _dep(user: User = Depends(get_current_user)):
        if not has_all(user, required_permissions):
            raise AuthorizationError("Forbidden", required=[getattr(p, "value", p) for p in required_permissions])
        return user

    return _dep
