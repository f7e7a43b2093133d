from fastapi import APIRouter, Depends, Query

from marketplace.api.deps import get_repositories, require_role
from marketplace.models import UserRole
from marketplace.repositories import Repositories
from marketplace.schemas.common import Pagination
from marketplace.schemas.requirement import (
    RequirementCreate,
    RequirementList,
    RequirementResponse,
    RequirementStats,
    RequirementUpdate,
)
from marketplace.services import requirements as requirement_service
from marketplace.services.errors import NotFoundError
from marketplace.services.locking import requirement_key, serialized
from marketplace.services.principal import Principal

router = APIRouter(prefix="/requirements", tags=["requirements"])

importer_only = require_role(UserRole.IMPORTER)


@router.post("", response_model=RequirementResponse, status_code=201)
def create_requirement(
    payload: RequirementCreate,
    importer: Principal = Depends(importer_only),
    repos: Repositories = Depends(get_repositories),
):
    requirement = requirement_service.create_requirement(repos, importer, payload)
    repos.db.commit()
    return RequirementResponse.model_validate(requirement)


@router.get("", response_model=RequirementList)
def list_requirements(
    status: str = "active",
    category: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    repos: Repositories = Depends(get_repositories),
):
    """Public listing of requirements, newest first by default."""
    items, total = repos.requirements.search(
        status=status, category=category, sort_by=sort_by, sort_order=sort_order, page=page, limit=limit,
    )
    return RequirementList(
        requirements=[RequirementResponse.model_validate(r) for r in items],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/my", response_model=RequirementList)
def list_my_requirements(
    status: str = "all",
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    importer: Principal = Depends(importer_only),
    repos: Repositories = Depends(get_repositories),
):
    items, total = repos.requirements.search(status=status, importer_id=importer.id, page=page, limit=limit)
    return RequirementList(
        requirements=[RequirementResponse.model_validate(r) for r in items],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/stats", response_model=RequirementStats)
def get_requirement_stats(
    importer: Principal = Depends(importer_only),
    repos: Repositories = Depends(get_repositories),
):
    return requirement_service.requirement_stats(repos, importer)


@router.get("/{requirement_id}", response_model=RequirementResponse)
def get_requirement(requirement_id: str, repos: Repositories = Depends(get_repositories)):
    requirement = repos.requirements.get(requirement_id)
    if not requirement:
        raise NotFoundError("Requirement not found")
    return RequirementResponse.model_validate(requirement)


@router.put("/{requirement_id}/close", response_model=RequirementResponse)
def close_requirement(
    requirement_id: str,
    importer: Principal = Depends(importer_only),
    repos: Repositories = Depends(get_repositories),
):
    with serialized(repos.db, requirement_key(requirement_id)):
        requirement = requirement_service.close_requirement(repos, importer, requirement_id)
    return RequirementResponse.model_validate(requirement)


@router.put("/{requirement_id}", response_model=RequirementResponse)
def update_requirement(
    requirement_id: str,
    payload: RequirementUpdate,
    importer: Principal = Depends(importer_only),
    repos: Repositories = Depends(get_repositories),
):
    with serialized(repos.db, requirement_key(requirement_id)):
        requirement = requirement_service.update_requirement(repos, importer, requirement_id, payload)
    return RequirementResponse.model_validate(requirement)


@router.delete("/{requirement_id}")
def delete_requirement(
    requirement_id: str,
    importer: Principal = Depends(importer_only),
    repos: Repositories = Depends(get_repositories),
):
    """Delete a requirement that has never received a bid."""
    with serialized(repos.db, requirement_key(requirement_id)):
        requirement_service.delete_requirement(repos, importer, requirement_id)
    return {"status": "ok", "message": "Requirement deleted"}
