from typing import List, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..errors import AuthorizationError, NotFoundError
from ..models.models import User
from ..schemas.auth import UserRole
from ..utils import utcnow
from .operations import parse_id
from .permissions import normalize_permissions


def email_allowed(email: str, domain: Optional[str] = None) -> bool:
    domain = (domain or settings.company_domain).lower().lstrip("@")
    return email.lower().endswith(f"@{domain}")


def get_user(db: Session, user_id) -> User:
    user = db.query(User).filter(User.id == parse_id(user_id, "id")).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.lower()).first()


def list_users(db: Session) -> List[User]:
    return db.query(User).order_by(User.created_at.asc()).all()


def login_or_provision(db: Session, email: str, name: str) -> User:
    """
    Return the user for `email`, creating it on first login.

    Only addresses in the company domain may log in. New users start as viewers
    with the default permissions, unless listed in ADMIN_EMAILS.
    """
    email = email.strip().lower()
    if not email_allowed(email):
        raise AuthorizationError("Access denied. Email must belong to the company domain.")
    user = get_user_by_email(db, email)
    if user is None:
        is_admin = email in settings.admin_email_set()
        user = User(
            email=email,
            name=name.strip(),
            role=UserRole.admin.value if is_admin else UserRole.viewer.value,
            permissions=list(settings.default_permissions),
            created_at=utcnow(),
        )
        db.add(user)
    user.last_login_at = utcnow()
    db.commit()
    db.refresh(user)
    return user


def set_permissions(db: Session, user: User, permissions: List[str]) -> User:
    user.permissions = normalize_permissions(permissions)
    db.commit()
    db.refresh(user)
    return user


def set_role(db: Session, user: User, role: str) -> User:
    user.role = UserRole(role).value
    db.commit()
    db.refresh(user)
    return user
