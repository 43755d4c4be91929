from ideaboard.models.generation import GenerationStep
from ideaboard.models.project import (
    Feature,
    Priority,
    Project,
    ProjectRecord,
    Task,
)
from ideaboard.models.settings import ModelConfig, ModelSettingsRecord

__all__ = [
    "Feature",
    "GenerationStep",
    "ModelConfig",
    "ModelSettingsRecord",
    "Priority",
    "Project",
    "ProjectRecord",
    "Task",
]
