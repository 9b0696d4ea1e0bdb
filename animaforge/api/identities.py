from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from animaforge.api.deps import Services, get_services
from animaforge.core.errors import NotFoundError

router = APIRouter()


class CreateIdentityRequest(BaseModel):
    identity_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    name: str = ""


class HistoryEditRequest(BaseModel):
    day: date
    completed: bool


class TaskCompletionRequest(BaseModel):
    task_id: str = Field(..., min_length=1)
    total_tasks: int = Field(..., ge=1)


class DebugDaysRequest(BaseModel):
    days: int = Field(..., ge=1, le=1000)


@router.post("/v1/identities", status_code=201)
def create_identity(body: CreateIdentityRequest, services: Services = Depends(get_services)):
    services.chronos.ensure_profile(body.user_id)
    identity = services.progression.create_identity(body.identity_id, body.user_id, body.name)
    return identity.to_dict()


@router.get("/v1/identities/{identity_id}/progress")
def get_progress(identity_id: str, services: Services = Depends(get_services)):
    return services.progression.get_progress(identity_id).to_dict()


@router.get("/v1/identities/{identity_id}/history")
def get_history(identity_id: str, services: Services = Depends(get_services)):
    return {"history": [entry.to_dict() for entry in services.progression.get_history(identity_id)]}


@router.put("/v1/identities/{identity_id}/history")
def edit_history(identity_id: str, body: HistoryEditRequest, services: Services = Depends(get_services)):
    progress = services.progression.set_date_completion(identity_id, body.day, body.completed)
    return progress.to_dict()


@router.post("/v1/identities/{identity_id}/toggle")
def toggle_today(identity_id: str, services: Services = Depends(get_services)):
    result = services.progression.toggle_today(identity_id)
    return {
        "date": result.day.isoformat(),
        "completed": result.completed,
        "progress": result.progress.to_dict(),
    }


@router.post("/v1/identities/{identity_id}/recompute")
def recompute(identity_id: str, services: Services = Depends(get_services)):
    return services.progression.recompute(identity_id).to_dict()


@router.post("/v1/identities/{identity_id}/tasks")
def complete_task(identity_id: str, body: TaskCompletionRequest, services: Services = Depends(get_services)):
    outcome = services.chronos.complete_task(identity_id, body.task_id, body.total_tasks)
    return {
        "progress": outcome.progress.to_dict(),
        "newly_completed": outcome.newly_completed,
        "streak_incremented": outcome.streak_incremented,
        "current_streak": outcome.new_streak,
    }


@router.post("/v1/identities/{identity_id}/gates/{gate}")
def complete_gate_task(identity_id: str, gate: str, services: Services = Depends(get_services)):
    return services.accrual.complete_gate_task(identity_id, gate).to_dict()


@router.get("/v1/identities/{identity_id}/level-progress")
def get_level_progress(identity_id: str, services: Services = Depends(get_services)):
    return services.accrual.get_level_progress(identity_id).to_dict()


@router.get("/v1/identities/{identity_id}/level")
def get_level_info(identity_id: str, services: Services = Depends(get_services)):
    return services.accrual.get_level_info(identity_id)


@router.post("/v1/identities/{identity_id}/debug/add-days")
def debug_add_days(identity_id: str, body: DebugDaysRequest, services: Services = Depends(get_services)):
    return services.progression.debug_add_days(identity_id, body.days).to_dict()


@router.post("/v1/identities/{identity_id}/debug/rollback-tier")
def debug_rollback_tier(identity_id: str, services: Services = Depends(get_services)):
    return services.progression.debug_rollback_tier(identity_id).to_dict()


@router.get("/v1/users/{user_id}/best-identity")
def best_identity(user_id: str, services: Services = Depends(get_services)):
    identity = services.progression.best_identity(user_id)
    if identity is None:
        raise NotFoundError(f"User {user_id} has no active identities", code="identity_not_found")
    return identity.to_dict()
