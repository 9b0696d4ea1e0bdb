"""Liveness and readiness probes."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from animaforge.api.deps import Services, get_services
from animaforge.core.database import check_connection
from animaforge.persistence.sql import SqlRepository

logger = logging.getLogger("animaforge")

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@router.get("/readyz")
def readyz(services: Services = Depends(get_services)):
    """Readiness: the repository can be reached."""
    backend = "sql" if isinstance(services.repository, SqlRepository) else "memory"
    if backend == "sql" and not check_connection():
        logger.warning("[readyz] database unreachable")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})
    return {"status": "ok", "repository": backend}
