from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

TaskStatus = Literal["todo", "doing", "testing", "fixing", "done"]
TASK_STATUSES: tuple[str, ...] = ("todo", "doing", "testing", "fixing", "done")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Priority(str, Enum):
    """MoSCoW priority levels."""

    MUST_HAVE = "MustHave"
    SHOULD_HAVE = "ShouldHave"
    COULD_HAVE = "CouldHave"
    WONT_HAVE = "WontHave"


class _Record(BaseModel):
    # Immutable value records, serialized with the camelCase keys of the stored layout.
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class Feature(_Record):
    id: int
    title: str
    description: str = ""


class Task(_Record):
    id: str
    fid: int
    title: str
    description: str | None = None
    status: TaskStatus = "todo"
    priority: Priority | None = None
    tag: str | None = None
    estimated_end_date: str | None = None
    duration: int | None = None


class Project(_Record):
    id: str
    name: str
    start_at: str
    prd: str = ""
    features: list[Feature] = []
    tasks: list[Task] = []

    def find_task(self, task_id: str) -> Task | None:
        return next((t for t in self.tasks if t.id == task_id), None)

    def find_feature(self, feature_id: int) -> Feature | None:
        return next((f for f in self.features if f.id == feature_id), None)


class ProjectRecord(SQLModel, table=True):
    __tablename__ = "projects"

    id: str = Field(primary_key=True)
    name: str
    start_at: str
    prd: str = Field(default="")
    features: str = Field(default="[]")  # JSON
    tasks: str = Field(default="[]")  # JSON
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
