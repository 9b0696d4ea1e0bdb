"""Rank models for the four-dimension overall rank."""

from pydantic import BaseModel, ConfigDict, Field


class Dimensions(BaseModel):
    """Raw stat scores; each raw point scale maps 5 points to one rank step."""
    model_config = ConfigDict(frozen=True)

    body: float = Field(0.0, ge=0)
    mind: float = Field(0.0, ge=0)
    soul: float = Field(0.0, ge=0)
    will: float = Field(0.0, ge=0)


class RankResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    final_score: float
    rank_tier: str
    elite_average: float
    anchor: int
