from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ideaboard.api.deps import get_config_store, get_generation_manager, get_project_store
from ideaboard.models.generation import GenerationStep
from ideaboard.services.generation_runs import GenerationRun, GenerationRunManager
from ideaboard.services.store import ConfigStore, SqlProjectStore

router = APIRouter(prefix="/generations", tags=["generations"])

MAX_IDEA_LENGTH = 200


# --- Pydantic models ---


class StartGenerationRequest(BaseModel):
    idea: str
    locale: Literal["zh", "en"] | None = None
    project_id: str | None = None


class GenerationRunResponse(BaseModel):
    id: str
    idea: str
    locale: str
    status: str
    steps: list[GenerationStep]
    error: str | None
    project_id: str | None


def _to_response(run: GenerationRun) -> GenerationRunResponse:
    return GenerationRunResponse(
        id=run.id,
        idea=run.idea,
        locale=run.locale,
        status=run.status,
        steps=[s.model_copy() for s in run.steps],
        error=run.error,
        project_id=run.project_id or run.target_project_id,
    )


def _get_run_or_404(run_id: str, manager: GenerationRunManager) -> GenerationRun:
    run = manager.get(run_id)
    if not run:
        raise HTTPException(status_code=404, detail="Generation run not found")
    return run


# --- Endpoints ---


@router.post("", response_model=GenerationRunResponse, status_code=202)
async def start_generation(
    body: StartGenerationRequest,
    config_store: ConfigStore = Depends(get_config_store),
    project_store: SqlProjectStore = Depends(get_project_store),
    manager: GenerationRunManager = Depends(get_generation_manager),
):
    idea = body.idea.strip()
    if not idea:
        raise HTTPException(status_code=400, detail="Idea cannot be empty")
    if len(idea) > MAX_IDEA_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Idea must be at most {MAX_IDEA_LENGTH} characters",
        )
    if body.project_id and not project_store.get_by_id(body.project_id):
        raise HTTPException(status_code=404, detail="Project not found")

    run = manager.start(
        idea,
        config_store.load(),
        locale=body.locale,
        project_id=body.project_id,
    )
    return _to_response(run)


@router.get("/{run_id}", response_model=GenerationRunResponse)
async def get_generation(
    run_id: str,
    manager: GenerationRunManager = Depends(get_generation_manager),
):
    return _to_response(_get_run_or_404(run_id, manager))


@router.post("/{run_id}/cancel", response_model=GenerationRunResponse)
async def cancel_generation(
    run_id: str,
    manager: GenerationRunManager = Depends(get_generation_manager),
):
    _get_run_or_404(run_id, manager)
    return _to_response(manager.cancel(run_id))
