from typing import Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from animaforge.api.deps import Services, get_services

router = APIRouter()


class ResetRequest(BaseModel):
    task_totals: Optional[Dict[str, int]] = None


@router.post("/v1/chronos/{user_id}/reset")
def daily_reset(user_id: str, body: Optional[ResetRequest] = None, services: Services = Depends(get_services)):
    result = services.chronos.execute_daily_reset(user_id, body.task_totals if body else None)
    return result.to_dict()
