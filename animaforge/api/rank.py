from fastapi import APIRouter, Query

from animaforge.features.rank.engine import RankEngine
from animaforge.models.rank import Dimensions, RankResult

router = APIRouter()


@router.post("/v1/rank", response_model=RankResult)
def overall_rank(dimensions: Dimensions):
    return RankEngine.calculate_overall_rank(dimensions)


@router.get("/v1/rank/stat")
def stat_rank(raw: float = Query(..., ge=0)):
    return {"raw": raw, "value": RankEngine.stat_rank_value(raw), "rank": RankEngine.stat_rank_letter(raw)}
