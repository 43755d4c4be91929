from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ideaboard.api.deps import get_project_store, to_http_error
from ideaboard.errors import IdeaboardError
from ideaboard.models.project import Feature, Project, Task
from ideaboard.services.kanban import Mutation, apply_mutation
from ideaboard.services.store import SqlProjectStore

router = APIRouter(prefix="/projects", tags=["projects"])


# --- Pydantic models ---


class ReplaceProjectRequest(BaseModel):
    name: str | None = None
    prd: str | None = None
    features: list[Feature] | None = None
    tasks: list[Task] | None = None


class MutationRequest(BaseModel):
    mutation: Mutation


# --- Helpers ---


def _get_project_or_404(project_id: str, store: SqlProjectStore) -> Project:
    project = store.get_by_id(project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


# --- Endpoints ---


@router.get("", response_model=list[Project])
async def list_projects(store: SqlProjectStore = Depends(get_project_store)):
    return store.list_all()


@router.get("/{project_id}", response_model=Project)
async def get_project(
    project_id: str, store: SqlProjectStore = Depends(get_project_store)
):
    return _get_project_or_404(project_id, store)


@router.put("/{project_id}", response_model=Project)
async def replace_project(
    project_id: str,
    body: ReplaceProjectRequest,
    store: SqlProjectStore = Depends(get_project_store),
):
    """Replace the reviewed parts of a project wholesale."""
    project = _get_project_or_404(project_id, store)

    update_data = {
        key: getattr(body, key)
        for key in body.model_fields_set
        if getattr(body, key) is not None
    }
    if "name" in update_data and not (update_data["name"] or "").strip():
        raise HTTPException(status_code=400, detail="Project name cannot be empty")
    updated = project.model_copy(update=update_data)

    feature_ids = {f.id for f in updated.features}
    if len(feature_ids) != len(updated.features):
        raise HTTPException(status_code=400, detail="Duplicate feature id")
    broken = [t.id for t in updated.tasks if t.fid not in feature_ids]
    if broken:
        raise HTTPException(
            status_code=400,
            detail=f"Tasks reference unknown features: {', '.join(broken)}",
        )

    try:
        store.upsert(updated)
    except IdeaboardError as e:
        raise to_http_error(e)
    return updated


@router.delete("/{project_id}")
async def delete_project(
    project_id: str, store: SqlProjectStore = Depends(get_project_store)
):
    _get_project_or_404(project_id, store)
    try:
        store.remove(project_id)
    except IdeaboardError as e:
        raise to_http_error(e)
    return {"detail": "Project deleted"}


@router.post("/{project_id}/mutations", response_model=Project)
async def mutate_project(
    project_id: str,
    body: MutationRequest,
    store: SqlProjectStore = Depends(get_project_store),
):
    project = _get_project_or_404(project_id, store)
    try:
        return await apply_mutation(project, body.mutation, store)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except IdeaboardError as e:
        raise to_http_error(e)
