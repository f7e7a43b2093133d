import logging

from fastapi import APIRouter, Depends

from marketplace.api.deps import get_principal, get_repositories
from marketplace.models import User
from marketplace.repositories import Repositories
from marketplace.schemas.user import UserCreate, UserResponse
from marketplace.services.errors import NotFoundError, StateConflictError
from marketplace.services.principal import Principal

router = APIRouter(prefix="/users", tags=["users"])
logger = logging.getLogger(__name__)


@router.post("", response_model=UserResponse, status_code=201)
def register_user(payload: UserCreate, repos: Repositories = Depends(get_repositories)):
    """Create the marketplace profile for an account issued by the auth service."""
    if repos.users.get_by_email(payload.email):
        raise StateConflictError("A user with this email already exists")
    user = repos.users.add(User(**payload.model_dump()))
    repos.db.commit()
    repos.db.refresh(user)
    logger.info("User registered: %s (%s)", user.id, user.role)
    return user


@router.get("/me", response_model=UserResponse)
def get_me(principal: Principal = Depends(get_principal), repos: Repositories = Depends(get_repositories)):
    user = repos.users.get(principal.id)
    if not user:
        raise NotFoundError("User not found")
    return user
