"""Knowledge-graph read routes."""

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.orm import Session

from sidecar.db.dependencies import get_db
from sidecar.schemas.common import ApiResponse
from sidecar.schemas.graph import EvidenceRead, GraphNodeDetail, GraphNodeRead
from sidecar.services.evidence import list_evidence_for_node
from sidecar.services.graph import get_graph_node, list_graph_nodes


project_router = APIRouter(prefix="/projects/{project_id}/graph")
router = APIRouter(prefix="/graph")


@project_router.get("/nodes", response_model=ApiResponse[list[GraphNodeRead]])
def get_project_nodes(
    project_id: int = Path(..., ge=1),
    entity_type: str | None = Query(default=None, max_length=50),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
) -> ApiResponse[list[GraphNodeRead]]:
    """List project graph nodes, newest first."""

    nodes = list_graph_nodes(db, project_id, entity_type=entity_type, limit=limit)
    return ApiResponse(data=[GraphNodeRead.model_validate(node) for node in nodes])


@router.get("/nodes/{node_id}", response_model=ApiResponse[GraphNodeDetail])
def get_node(
    node_id: str = Path(..., min_length=1, max_length=36),
    db: Session = Depends(get_db),
) -> ApiResponse[GraphNodeDetail]:
    """Return one node with its evidence."""

    node = get_graph_node(db, node_id)
    if node is None:
        raise HTTPException(status_code=404, detail="Graph node not found")
    return ApiResponse(
        data=GraphNodeDetail(
            **GraphNodeRead.model_validate(node).model_dump(),
            evidence=[EvidenceRead.model_validate(row) for row in list_evidence_for_node(db, node_id)],
        )
    )
