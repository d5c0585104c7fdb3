"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from sidecar.config import get_settings
from sidecar.db.session import SessionLocal
from sidecar.routers import graph, proposals, roles, workflow
from sidecar.services.notifications import get_default_dispatcher

logger = logging.getLogger(__name__)


def _check_database() -> None:
    """Open one connection at process start so misconfiguration shows up early."""

    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Database check failed; continuing without startup check.")


@asynccontextmanager
async def lifespan(_: FastAPI):
    _check_database()
    yield
    get_default_dispatcher().shutdown(wait=False)


app = FastAPI(title=get_settings().app_name, version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(workflow.router, tags=["workflow"])
app.include_router(proposals.project_router, tags=["proposals"])
app.include_router(proposals.router, tags=["proposals"])
app.include_router(roles.project_router, tags=["roles"])
app.include_router(roles.router, tags=["roles"])
app.include_router(graph.project_router, tags=["graph"])
app.include_router(graph.router, tags=["graph"])


@app.get("/health")
def health() -> dict[str, str]:
    """Simple health check endpoint."""

    return {"status": "ok"}
