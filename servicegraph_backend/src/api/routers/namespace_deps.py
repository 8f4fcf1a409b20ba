from __future__ import annotations

from fastapi import APIRouter, HTTPException, Path, Request

from src.api.schemas.common import ErrorResponse
from src.api.schemas.graph import (
    NamespaceDependency,
    NamespaceDependencyCreate,
    NamespaceDependencyListResponse,
)
from src.api.services import records_service
from src.api.services.identity import SERVICE_KEY_SEPARATOR

router = APIRouter(prefix="/api/namespace-dependencies", tags=["Namespace dependencies"])


@router.get(
    "",
    response_model=NamespaceDependencyListResponse,
    summary="List namespace dependencies",
    description="List declared namespace dependencies ordered by (from_namespace, to_namespace).",
    operation_id="list_namespace_dependencies",
)
def list_namespace_dependencies(request: Request) -> NamespaceDependencyListResponse:
    """List namespace dependencies."""
    items = records_service.list_namespace_dependencies(request)
    return NamespaceDependencyListResponse(items=items, total=len(items))


@router.post(
    "",
    response_model=NamespaceDependency,
    responses={400: {"model": ErrorResponse}},
    summary="Declare namespace dependency",
    description="Create the dependency from_namespace -> to_namespace, or update it if the pair already exists.",
    operation_id="upsert_namespace_dependency",
)
def upsert_namespace_dependency(request: Request, payload: NamespaceDependencyCreate) -> NamespaceDependency:
    """Create or update a namespace dependency."""
    src = payload.from_namespace.strip()
    dst = payload.to_namespace.strip()
    if not src or not dst:
        raise HTTPException(status_code=400, detail="from_namespace and to_namespace must not be empty")
    if SERVICE_KEY_SEPARATOR in src or SERVICE_KEY_SEPARATOR in dst:
        raise HTTPException(status_code=400, detail=f"namespaces must not contain '{SERVICE_KEY_SEPARATOR}'")
    if src == dst:
        raise HTTPException(status_code=400, detail="a namespace cannot depend on itself")
    return records_service.upsert_namespace_dependency(request, payload)


@router.delete(
    "/{dependency_id}",
    response_model=NamespaceDependency,
    responses={404: {"model": ErrorResponse}},
    summary="Delete namespace dependency",
    description="Delete a namespace dependency by id and return it.",
    operation_id="delete_namespace_dependency",
)
def delete_namespace_dependency(
    request: Request,
    dependency_id: str = Path(..., description="Dependency id (Mongo ObjectId string)."),
) -> NamespaceDependency:
    """Delete a namespace dependency."""
    deleted = records_service.delete_namespace_dependency(request, dependency_id)
    if not deleted:
        # Could be invalid id or not found; keep simple 404 for consumers.
        raise HTTPException(status_code=404, detail="namespace dependency not found")
    return deleted
