from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator

from streakdsa.api.deps import get_problem_service
from streakdsa.features.problems.service import ProblemInput, ProblemService
from streakdsa.models.problem import Difficulty

router = APIRouter(tags=["problems"])


class ProblemRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    difficulty: Difficulty
    topic: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    external_url: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name is required")
        return v

    @field_validator("difficulty", mode="before")
    @classmethod
    def _upper_difficulty(cls, v):
        return v.upper() if isinstance(v, str) else v


class ProblemEditRequest(BaseModel):
    """Partial edit; omitted fields keep their stored value."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    difficulty: Optional[Difficulty] = None
    topic: Optional[str] = None
    tags: Optional[List[str]] = None
    external_url: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("difficulty", mode="before")
    @classmethod
    def _upper_difficulty(cls, v):
        return v.upper() if isinstance(v, str) else v


@router.post("/v1/problems/{user_id}", status_code=201)
async def log_problem(user_id: str, req: ProblemRequest, service: ProblemService = Depends(get_problem_service)):
    result = await service.log_problem(user_id, ProblemInput(**req.model_dump()))
    return result.as_dict()


@router.get("/v1/problems/{user_id}/today")
async def list_today(user_id: str, service: ProblemService = Depends(get_problem_service)):
    return await service.list_today(user_id)


@router.delete("/v1/problems/{user_id}/{problem_id}")
async def delete_problem(user_id: str, problem_id: str, service: ProblemService = Depends(get_problem_service)):
    result = await service.delete_problem(user_id, problem_id)
    return result.as_dict()


@router.patch("/v1/problems/{user_id}/{problem_id}")
async def update_problem(
    user_id: str,
    problem_id: str,
    req: ProblemEditRequest,
    service: ProblemService = Depends(get_problem_service),
):
    result = await service.update_problem(user_id, problem_id, req.model_dump(exclude_unset=True))
    return result.as_dict()
