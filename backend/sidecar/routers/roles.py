"""Role directory routes."""

from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.orm import Session

from sidecar.db.dependencies import get_db
from sidecar.schemas.common import ApiResponse
from sidecar.schemas.roles import (
    RoleAssignmentCreate,
    RoleAssignmentRead,
    RoleCreate,
    RoleDeleteResult,
    RoleHierarchyNode,
    RolePermissionRead,
    RolePermissionUpdate,
    RoleRead,
    RoleUpdate,
)
from sidecar.services.roles import (
    RoleValidationError,
    assign_role,
    build_role_hierarchy,
    create_role,
    deactivate_role,
    get_role,
    list_project_roles,
    list_role_permissions,
    remove_role_assignment,
    set_permission,
    update_role,
)


project_router = APIRouter(prefix="/projects/{project_id}")
router = APIRouter(prefix="/roles")


@project_router.get("/roles", response_model=ApiResponse[list[RoleRead]])
def get_roles(
    project_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[list[RoleRead]]:
    """List active project roles."""

    return ApiResponse(data=[RoleRead.model_validate(role) for role in list_project_roles(db, project_id)])


@project_router.get("/roles/hierarchy", response_model=ApiResponse[list[RoleHierarchyNode]])
def get_role_hierarchy(
    project_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[list[RoleHierarchyNode]]:
    """Return project roles nested by reporting line."""

    return ApiResponse(data=build_role_hierarchy(list_project_roles(db, project_id)))


@project_router.post("/roles", response_model=ApiResponse[RoleRead], status_code=201)
def post_role(
    payload: RoleCreate,
    project_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[RoleRead]:
    """Create a custom role."""

    try:
        role = create_role(db, project_id, payload)
    except RoleValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ApiResponse(data=RoleRead.model_validate(role))


@project_router.post("/role-assignments", response_model=ApiResponse[RoleAssignmentRead], status_code=201)
def post_role_assignment(
    payload: RoleAssignmentCreate,
    project_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[RoleAssignmentRead]:
    """Assign a role to a user."""

    try:
        assignment = assign_role(db, project_id, payload)
    except RoleValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ApiResponse(data=RoleAssignmentRead.model_validate(assignment))


@project_router.delete(
    "/role-assignments/{user_id}/{role_id}",
    response_model=ApiResponse[dict[str, bool]],
)
def delete_role_assignment(
    project_id: int = Path(..., ge=1),
    user_id: int = Path(..., ge=1),
    role_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[dict[str, bool]]:
    """Remove a user's role assignment."""

    if not remove_role_assignment(db, user_id, project_id, role_id):
        raise HTTPException(status_code=404, detail="Role assignment not found")
    return ApiResponse(data={"deleted": True})


@router.patch("/{role_id}", response_model=ApiResponse[RoleRead])
def patch_role(
    payload: RoleUpdate,
    role_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[RoleRead]:
    """Update a role."""

    try:
        role = update_role(db, role_id, payload)
    except RoleValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if role is None:
        raise HTTPException(status_code=404, detail="Role not found")
    return ApiResponse(data=RoleRead.model_validate(role))


@router.delete("/{role_id}", response_model=ApiResponse[RoleDeleteResult])
def delete_role(
    role_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[RoleDeleteResult]:
    """Delete a role, or deactivate it when users still hold it."""

    try:
        result = deactivate_role(db, role_id)
    except RoleValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if result is None:
        raise HTTPException(status_code=404, detail="Role not found")
    return ApiResponse(data=result)


@router.get("/{role_id}/permissions", response_model=ApiResponse[list[RolePermissionRead]])
def get_permissions(
    role_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[list[RolePermissionRead]]:
    """List permission rows of a role."""

    if get_role(db, role_id) is None:
        raise HTTPException(status_code=404, detail="Role not found")
    return ApiResponse(data=[RolePermissionRead.model_validate(row) for row in list_role_permissions(db, role_id)])


@router.put("/{role_id}/permissions/{entity_type}", response_model=ApiResponse[RolePermissionRead])
def put_permission(
    payload: RolePermissionUpdate,
    role_id: int = Path(..., ge=1),
    entity_type: str = Path(..., min_length=1, max_length=50),
    db: Session = Depends(get_db),
) -> ApiResponse[RolePermissionRead]:
    """Create or replace one permission row; the path entity type wins."""

    try:
        row = set_permission(db, role_id, payload.model_copy(update={"entity_type": entity_type}))
    except RoleValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if row is None:
        raise HTTPException(status_code=404, detail="Role not found")
    return ApiResponse(data=RolePermissionRead.model_validate(row))
