"""Kanban board mutations with optimistic update and rollback.

Every mutation is a pure ``Project -> Project`` transformation over frozen
records. ``apply_mutation`` computes the new project, persists it and only
then hands it back; if persisting fails the caller still holds the previous
project, which is exactly the last state that made it to the store.
"""

import inspect
import logging
import uuid
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ideaboard.errors import PersistError, UnknownEntityError
from ideaboard.models.project import Feature, Priority, Project, Task, TaskStatus
from ideaboard.services.store import ProjectStore

logger = logging.getLogger(__name__)

PRIORITY_CYCLE: tuple[Priority | None, ...] = (
    None,
    Priority.MUST_HAVE,
    Priority.SHOULD_HAVE,
    Priority.COULD_HAVE,
    Priority.WONT_HAVE,
)


# --- Task transitions ---


def apply_status_change(task: Task, status: TaskStatus) -> Task:
    return task.model_copy(update={"status": status})


def apply_priority(task: Task, priority: Priority | None) -> Task:
    return task.model_copy(update={"priority": priority})


def next_priority(priority: Priority | None) -> Priority | None:
    """Unset -> Must -> Should -> Could -> Won't -> unset."""
    index = PRIORITY_CYCLE.index(priority)
    return PRIORITY_CYCLE[(index + 1) % len(PRIORITY_CYCLE)]


def apply_task_edit(task: Task, changes: dict) -> Task:
    return task.model_copy(update=changes)


def apply_reassignment(task: Task, feature: Feature) -> Task:
    return task.model_copy(update={"fid": feature.id, "tag": feature.title})


# --- Read helpers ---


def feature_title(project: Project, fid: int, placeholder: str = "Feature") -> str:
    """Title of the task's feature, or ``placeholder`` for a broken reference."""
    feature = project.find_feature(fid)
    return feature.title if feature else placeholder


def tasks_by_status(project: Project, status: TaskStatus) -> list[Task]:
    return [t for t in project.tasks if t.status == status]


def completion(project: Project) -> tuple[int, int]:
    """(done, total) task counts."""
    return len(tasks_by_status(project, "done")), len(project.tasks)


def _require_task(project: Project, task_id: str) -> Task:
    task = project.find_task(task_id)
    if task is None:
        raise UnknownEntityError(f"Task {task_id!r} not found in project {project.id!r}")
    return task


def _require_feature(project: Project, feature_id: int) -> Feature:
    feature = project.find_feature(feature_id)
    if feature is None:
        raise UnknownEntityError(
            f"Feature {feature_id} not found in project {project.id!r}"
        )
    return feature


def _replace_task(project: Project, task_id: str, fn) -> Project:
    _require_task(project, task_id)
    tasks = [fn(t) if t.id == task_id else t for t in project.tasks]
    return project.model_copy(update={"tasks": tasks})


def _next_feature_id(project: Project) -> int:
    return max((f.id for f in project.features), default=0) + 1


# --- Mutations ---


class _Mutation(BaseModel):
    # Request bodies accept the same camelCase keys the project records use.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MoveTask(_Mutation):
    kind: Literal["move_task"] = "move_task"
    task_id: str
    status: TaskStatus

    def apply(self, project: Project) -> Project:
        return _replace_task(
            project, self.task_id, lambda t: apply_status_change(t, self.status)
        )


class SetPriority(_Mutation):
    kind: Literal["set_priority"] = "set_priority"
    task_id: str
    priority: Priority | None = None

    def apply(self, project: Project) -> Project:
        return _replace_task(
            project, self.task_id, lambda t: apply_priority(t, self.priority)
        )


class CyclePriority(_Mutation):
    kind: Literal["cycle_priority"] = "cycle_priority"
    task_id: str

    def apply(self, project: Project) -> Project:
        return _replace_task(
            project, self.task_id, lambda t: apply_priority(t, next_priority(t.priority))
        )


class EditTask(_Mutation):
    """Edit task fields. Only fields that were explicitly set are changed."""

    kind: Literal["edit_task"] = "edit_task"
    task_id: str
    title: str | None = None
    description: str | None = None
    tag: str | None = None
    estimated_end_date: str | None = None
    duration: int | None = None

    def apply(self, project: Project) -> Project:
        changes = self.model_dump(exclude_unset=True, exclude={"kind", "task_id"})
        if "title" in changes and not (changes["title"] or "").strip():
            raise ValueError("Task title cannot be empty")
        return _replace_task(
            project, self.task_id, lambda t: apply_task_edit(t, changes)
        )


class ReassignTask(_Mutation):
    kind: Literal["reassign_task"] = "reassign_task"
    task_id: str
    feature_id: int

    def apply(self, project: Project) -> Project:
        feature = _require_feature(project, self.feature_id)
        return _replace_task(
            project, self.task_id, lambda t: apply_reassignment(t, feature)
        )


class AddTask(_Mutation):
    kind: Literal["add_task"] = "add_task"
    title: str = "New task"
    status: TaskStatus = "todo"
    feature_id: int | None = None
    description: str = ""
    task_id: str | None = None

    def apply(self, project: Project) -> Project:
        if self.feature_id is not None:
            feature = _require_feature(project, self.feature_id)
        elif project.features:
            feature = project.features[0]
        else:
            raise UnknownEntityError(
                f"Project {project.id!r} has no feature to attach the task to"
            )
        task_id = self.task_id or f"task-{uuid.uuid4().hex[:12]}"
        if project.find_task(task_id) is not None:
            raise ValueError(f"Task {task_id!r} already exists")
        task = Task(
            id=task_id,
            fid=feature.id,
            title=self.title,
            description=self.description,
            status=self.status,
            tag=feature.title,
            duration=0,
        )
        return project.model_copy(update={"tasks": [*project.tasks, task]})


class DeleteTask(_Mutation):
    kind: Literal["delete_task"] = "delete_task"
    task_id: str

    def apply(self, project: Project) -> Project:
        _require_task(project, self.task_id)
        tasks = [t for t in project.tasks if t.id != self.task_id]
        return project.model_copy(update={"tasks": tasks})


class AddFeature(_Mutation):
    """Add a feature, optionally moving one task onto it in the same write."""

    kind: Literal["add_feature"] = "add_feature"
    title: str
    description: str = ""
    assign_task_id: str | None = None

    def apply(self, project: Project) -> Project:
        if not self.title.strip():
            raise ValueError("Feature title cannot be empty")
        feature = Feature(
            id=_next_feature_id(project),
            title=self.title.strip(),
            description=self.description,
        )
        updated = project.model_copy(update={"features": [*project.features, feature]})
        if self.assign_task_id is not None:
            updated = _replace_task(
                updated, self.assign_task_id, lambda t: apply_reassignment(t, feature)
            )
        return updated


class UpdateFeature(_Mutation):
    kind: Literal["update_feature"] = "update_feature"
    feature_id: int
    title: str | None = None
    description: str | None = None

    def apply(self, project: Project) -> Project:
        _require_feature(project, self.feature_id)
        changes = self.model_dump(exclude_unset=True, exclude={"kind", "feature_id"})
        if "title" in changes:
            if not (changes["title"] or "").strip():
                raise ValueError("Feature title cannot be empty")
            changes["title"] = changes["title"].strip()
        if changes.get("description", "") is None:
            changes["description"] = ""
        features = [
            f.model_copy(update=changes) if f.id == self.feature_id else f
            for f in project.features
        ]
        tasks = project.tasks
        if "title" in changes:
            # Keep the denormalized tag in step with the feature title.
            tasks = [
                t.model_copy(update={"tag": changes["title"]})
                if t.fid == self.feature_id
                else t
                for t in tasks
            ]
        return project.model_copy(update={"features": features, "tasks": tasks})


class DeleteFeature(_Mutation):
    """Delete a feature.

    ``cascade`` deletes the tasks that reference it; ``reassign`` moves them
    to ``reassign_to``, which must be another existing feature.
    """

    kind: Literal["delete_feature"] = "delete_feature"
    feature_id: int
    policy: Literal["cascade", "reassign"] = "cascade"
    reassign_to: int | None = None

    def apply(self, project: Project) -> Project:
        _require_feature(project, self.feature_id)
        features = [f for f in project.features if f.id != self.feature_id]
        if self.policy == "cascade":
            tasks = [t for t in project.tasks if t.fid != self.feature_id]
        else:
            if self.reassign_to is None or self.reassign_to == self.feature_id:
                raise ValueError("reassign policy needs a different target feature")
            target = _require_feature(project, self.reassign_to)
            tasks = [
                apply_reassignment(t, target) if t.fid == self.feature_id else t
                for t in project.tasks
            ]
        return project.model_copy(update={"features": features, "tasks": tasks})


Mutation = Annotated[
    Union[
        MoveTask,
        SetPriority,
        CyclePriority,
        EditTask,
        ReassignTask,
        AddTask,
        DeleteTask,
        AddFeature,
        UpdateFeature,
        DeleteFeature,
    ],
    Field(discriminator="kind"),
]


async def apply_mutation(project: Project, mutation: Mutation, store: ProjectStore) -> Project:
    """Apply ``mutation`` and persist the result.

    Returns the new authoritative project. Raises PersistError if the store
    write fails; ``project`` itself is never modified, so the caller's state
    is the rollback state.
    """
    updated = mutation.apply(project)
    try:
        result = store.upsert(updated)
        if inspect.isawaitable(result):
            await result
    except PersistError:
        logger.error(
            f"Failed to persist {mutation.kind} on project {project.id}; keeping previous state"
        )
        raise
    except Exception as e:
        logger.error(
            f"Failed to persist {mutation.kind} on project {project.id}; keeping previous state"
        )
        raise PersistError(f"Failed to save project: {e}") from e
    return updated


class KanbanMutationEngine:
    """The board's authoritative project plus the task detail view, if open."""

    def __init__(self, store: ProjectStore, project: Project):
        self.store = store
        self.project = project
        self.detail: Task | None = None

    def open_task(self, task_id: str) -> Task:
        self.detail = _require_task(self.project, task_id)
        return self.detail

    def close_task(self) -> None:
        self.detail = None

    async def apply(self, mutation: Mutation) -> Project:
        updated = await apply_mutation(self.project, mutation, self.store)
        self.project = updated
        if self.detail is not None:
            self.detail = updated.find_task(self.detail.id)
        if isinstance(mutation, AddTask):
            # A newly added task opens straight into its detail view.
            self.detail = updated.tasks[-1]
        return updated
