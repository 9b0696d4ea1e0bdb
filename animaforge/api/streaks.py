from fastapi import APIRouter, Depends
from pydantic import BaseModel

from animaforge.api.deps import Services, get_services

router = APIRouter()


class DailyCompletionRequest(BaseModel):
    all_tasks_complete: bool = True


@router.get("/v1/streaks/{user_id}")
def get_streak(user_id: str, services: Services = Depends(get_services)):
    """Streak ladder summary for a user."""
    return services.streaks.get_progression_summary(user_id)


@router.post("/v1/streaks/{user_id}/complete-day")
def complete_day(user_id: str, body: DailyCompletionRequest, services: Services = Depends(get_services)):
    result = services.streaks.process_daily_completion(user_id, body.all_tasks_complete)
    increment = result.increment
    return {
        "success": result.success,
        "state": increment.new_state.to_dict(),
        "milestone_reached": increment.milestone_reached,
        "sub_milestone_reached": increment.sub_milestone_reached,
        "will_gain": increment.will_gain,
        "visual_state": result.visual_state.to_dict(),
    }


@router.post("/v1/streaks/{user_id}/level-up")
def level_up(user_id: str, services: Services = Depends(get_services)):
    result = services.streaks.process_level_up(user_id)
    return {
        "success": result.success,
        "previous_level": result.previous_level,
        "new_level": result.new_level,
        "streak_reset": result.streak_reset,
        "history_entry": result.history_entry,
    }


@router.post("/v1/streaks/{user_id}/break")
def break_streak(user_id: str, services: Services = Depends(get_services)):
    return services.streaks.process_streak_break(user_id).to_dict()
