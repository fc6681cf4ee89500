"""Dependency JSON API mounted under /api/dependencies."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from issuemap.errors import DependencyNotFoundError, DependencyValidationError, StoreError
from issuemap.models import DependencyFilter, DependencyStatus, DependencyType
from issuemap.service import DependencyService
from issuemap.storage import FileDependencyStore, HistoryService

router = APIRouter(prefix="/api/dependencies")


# --- Request models ---

class CreateDependencyRequest(BaseModel):
    source_id: str
    target_id: str
    type: str = "blocks"
    description: str = ""
    author: str = ""


class ActorRequest(BaseModel):
    actor: str = ""


class ImpactRequest(BaseModel):
    estimates: dict[str, float] | None = None
    include_requires: bool = False


# --- Service wiring ---

def get_service(request: Request) -> DependencyService:
    """Fresh service per request; nothing is cached between calls."""
    config = request.app.state.config
    return DependencyService(
        store=FileDependencyStore(config.root_dir),
        history=HistoryService(config.root_dir),
        config=config,
    )


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, DependencyValidationError):
        return HTTPException(400, str(e))
    if isinstance(e, DependencyNotFoundError):
        return HTTPException(404, str(e))
    return HTTPException(500, str(e))


def _mutation_response(service: DependencyService, dependency) -> dict:
    return {"dependency": dependency.to_dict(), "warnings": list(service.last_warnings)}


# --- Endpoints ---

@router.post("")
def create_dependency(req: CreateDependencyRequest, service: DependencyService = Depends(get_service)):
    try:
        dependency = service.create_dependency(
            req.source_id, req.target_id, req.type, req.description, req.author,
        )
    except (DependencyValidationError, StoreError) as e:
        raise _http_error(e) from e
    return _mutation_response(service, dependency)


@router.delete("/{dependency_id:path}")
def remove_dependency(dependency_id: str, actor: str = Query(""),
                      service: DependencyService = Depends(get_service)):
    try:
        dependency = service.remove_dependency(dependency_id, actor)
    except (DependencyValidationError, DependencyNotFoundError, StoreError) as e:
        raise _http_error(e) from e
    return _mutation_response(service, dependency)


@router.post("/{dependency_id:path}/resolve")
def resolve_dependency(dependency_id: str, req: ActorRequest,
                       service: DependencyService = Depends(get_service)):
    try:
        dependency = service.resolve_dependency(dependency_id, req.actor)
    except (DependencyValidationError, DependencyNotFoundError, StoreError) as e:
        raise _http_error(e) from e
    return _mutation_response(service, dependency)


@router.post("/{dependency_id:path}/reactivate")
def reactivate_dependency(dependency_id: str, req: ActorRequest,
                          service: DependencyService = Depends(get_service)):
    try:
        dependency = service.reactivate_dependency(dependency_id, req.actor)
    except (DependencyValidationError, DependencyNotFoundError, StoreError) as e:
        raise _http_error(e) from e
    return _mutation_response(service, dependency)


@router.get("/issue/{issue_id:path}")
def issue_dependencies(issue_id: str, service: DependencyService = Depends(get_service)):
    return {
        "issue_id": issue_id,
        "dependencies": [d.to_dict() for d in service.get_issue_dependencies(issue_id)],
    }


@router.get("/blocking/{issue_id:path}")
def blocking_info(issue_id: str, include_requires: bool = False,
                  service: DependencyService = Depends(get_service)):
    return service.get_blocking_info(issue_id, include_requires).to_dict()


@router.get("/blocked")
def blocked_issues(include_requires: bool = False,
                   service: DependencyService = Depends(get_service)):
    return {"blocked": service.get_blocked_issues(include_requires)}


@router.get("/graph")
def dependency_graph(include_requires: bool = False,
                     service: DependencyService = Depends(get_service)):
    return service.get_dependency_graph(include_requires).to_dict()


@router.get("/validate")
def validate(include_requires: bool = False,
             service: DependencyService = Depends(get_service)):
    return service.validate_dependency_graph(include_requires).to_dict()


@router.post("/impact/{issue_id:path}")
def impact(issue_id: str, req: ImpactRequest,
           service: DependencyService = Depends(get_service)):
    return service.analyze_dependency_impact(
        issue_id, req.estimates, req.include_requires,
    ).to_dict()


@router.get("/stats")
def stats(author: str | None = None, dep_type: str | None = Query(None, alias="type"),
          status: str | None = None,
          service: DependencyService = Depends(get_service)):
    try:
        predicate = DependencyFilter(
            created_by=author,
            type=DependencyType.parse(dep_type) if dep_type else None,
            status=DependencyStatus(status.lower()) if status else None,
        )
    except ValueError as e:
        raise HTTPException(400, str(e))
    return service.get_dependency_stats(predicate).to_dict()
