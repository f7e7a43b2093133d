from fastapi import Depends, Header
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.models import User
from marketplace.repositories import Repositories
from marketplace.services.errors import AuthenticationError, PermissionDeniedError
from marketplace.services.principal import Principal


def get_repositories(db: Session = Depends(get_db)) -> Repositories:
    return Repositories.from_session(db)


def get_principal(
    x_user_id: str | None = Header(None, alias="X-User-Id"),
    x_user_role: str | None = Header(None, alias="X-User-Role"),
    db: Session = Depends(get_db),
) -> Principal:
    """Principal forwarded by the auth gateway. The token itself is validated upstream."""
    if not x_user_id or not x_user_role:
        raise AuthenticationError("Authentication required")
    user = db.query(User).filter(User.id == x_user_id).first()
    if user is None or not user.is_active:
        raise AuthenticationError("Unknown or inactive user")
    if user.role != x_user_role:
        raise PermissionDeniedError("Role does not match the authenticated user")
    return Principal(id=user.id, role=user.role)


def require_role(*roles: str):
    def dependency(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role not in roles:
            raise PermissionDeniedError(f"Access denied. Required role(s): {', '.join(roles)}")
        return principal

    return dependency
