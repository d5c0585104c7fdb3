"""Seed default roles for a demo project and route a sample batch of candidates.

Usage (from repository root):
    python backend/scripts/seed_demo.py

Usage (from backend directory):
    python scripts/seed_demo.py
    # or
    python -m scripts.seed_demo
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from sqlalchemy import delete, select

# Make `sidecar` imports work whether the script is run from repo root or backend/.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sidecar.db.session import SessionLocal
from sidecar.models.graph_node import KnowledgeGraphNode
from sidecar.models.proposal import Proposal
from sidecar.models.role import Role
from sidecar.models.role_assignment import RoleAssignment
from sidecar.schemas.roles import RoleAssignmentCreate
from sidecar.services.notifications import LoggingNotifier, NotificationDispatcher
from sidecar.services.roles import assign_role, seed_default_roles
from sidecar.services.workflow import WorkflowEngine
from sidecar.workflow.types import SourceDescriptor


DEFAULT_PROJECT_ID = 1
DEMO_USERS = {"tech_lead": 101, "developer": 102}


def build_demo_candidates() -> list[dict[str, object]]:
    """Return a deterministic batch mixing auto-create and review outcomes."""

    return [
        {
            "entity_type": "Risk",
            "title": "Payment provider sunsets v1 API in Q3",
            "confidence": 0.92,
            "impact": "high",
            "citations": ["Provider email: v1 goes away end of Q3"],
            "reasoning": "Hard external deadline affecting checkout",
        },
        {
            "entity_type": "Decision",
            "title": "Move session storage to Redis",
            "confidence": 0.81,
            "impact": "medium",
            "citations": ["Let's just put sessions in Redis"],
        },
        {
            "entity_type": "Task",
            "title": "Write migration runbook",
            "confidence": 0.64,
            "priority": "low",
            "owner": "dana",
        },
        {
            "entity_type": "Risk",
            "title": "Single on-call engineer during launch",
            "confidence": 0.97,
            "impact": "critical",
            "citations": ["Only one person is on call launch week"],
        },
    ]


def reset_project(db, project_id: int) -> None:
    """Remove existing workflow records for the demo project."""

    role_ids = select(Role.id).where(Role.project_id == project_id)
    db.execute(delete(Proposal).where(Proposal.project_id == project_id))
    db.execute(delete(KnowledgeGraphNode).where(KnowledgeGraphNode.project_id == project_id))
    db.execute(delete(RoleAssignment).where(RoleAssignment.role_id.in_(role_ids)))
    db.execute(delete(Role).where(Role.project_id == project_id))
    db.commit()


def parse_args() -> argparse.Namespace:
    """Parse script CLI arguments."""

    parser = argparse.ArgumentParser(description="Seed demo roles and route a sample batch of candidates.")
    parser.add_argument(
        "--project-id",
        type=int,
        default=DEFAULT_PROJECT_ID,
        help=f"Project ID to seed (default: {DEFAULT_PROJECT_ID})",
    )
    parser.add_argument(
        "--no-reset",
        action="store_true",
        help="Do not delete existing records for the project before seeding.",
    )
    return parser.parse_args()


def main() -> None:
    """Seed demo data and print a short summary."""

    args = parse_args()
    project_id: int = args.project_id
    candidates = build_demo_candidates()

    with SessionLocal() as db:
        if not args.no_reset:
            reset_project(db, project_id)

        roles = {role.role_code: role for role in seed_default_roles(db, project_id)}
        for role_code, user_id in DEMO_USERS.items():
            assign_role(
                db,
                project_id,
                RoleAssignmentCreate(user_id=user_id, role_id=roles[role_code].id, is_primary=True),
            )

        engine = WorkflowEngine(db, dispatcher=NotificationDispatcher(LoggingNotifier()))
        source = SourceDescriptor(type="meeting_transcript", id="demo-standup", metadata={"chunk": 1})
        results = {
            role_code: engine.process_extracted_entities(
                candidates,
                user_id=user_id,
                project_id=project_id,
                source=source,
            )
            for role_code, user_id in DEMO_USERS.items()
        }

    print("Seed complete")
    print(f"project_id={project_id}")
    print(f"roles_created={len(roles)}")
    for role_code, result in results.items():
        summary = result.summary
        print(
            f"{role_code}: auto_created={summary.auto_created} proposals={summary.proposals} "
            f"skipped={summary.skipped} errors={summary.errors}"
        )
    print()
    print("Inspect:")
    print(f"  GET /projects/{project_id}/roles/hierarchy")
    print(f"  GET /projects/{project_id}/graph/nodes")
    print(f"  GET /projects/{project_id}/proposals/pending")
    print(f"  GET /projects/{project_id}/proposals/stats")


if __name__ == "__main__":
    main()
