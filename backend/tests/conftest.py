import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from ideaboard.database import get_session
from ideaboard.errors import PersistError
from ideaboard.main import app
from ideaboard.models.project import Feature, Project, Task


class MemoryProjectStore:
    """Dict-backed ProjectStore; set ``fail`` to make writes raise PersistError."""

    def __init__(self):
        self.projects: dict[str, Project] = {}
        self.fail = False
        self.writes = 0

    def list_all(self) -> list[Project]:
        return list(self.projects.values())

    def get_by_id(self, project_id: str) -> Project | None:
        return self.projects.get(project_id)

    def upsert(self, project: Project) -> None:
        if self.fail:
            raise PersistError("disk full")
        self.writes += 1
        self.projects[project.id] = project

    def remove(self, project_id: str) -> None:
        if self.fail:
            raise PersistError("disk full")
        self.projects.pop(project_id, None)


class ScriptedClient:
    """Completion client that returns canned responses in call order.

    An ``Exception`` instance in the script is raised instead of returned;
    ``BLOCK`` makes that call wait until it is cancelled.
    """

    BLOCK = object()

    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts: list[str] = []
        self.blocked = asyncio.Event()

    async def complete(self, prompt, config) -> str:
        self.prompts.append(prompt)
        response = self.responses.pop(0)
        if response is self.BLOCK:
            self.blocked.set()
            await asyncio.Event().wait()
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture(name="session")
def session_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session: Session):
    def get_session_override():
        yield session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def memory_store() -> MemoryProjectStore:
    return MemoryProjectStore()


@pytest.fixture
def scripted_client():
    return ScriptedClient


@pytest.fixture
def project() -> Project:
    return Project(
        id="proj-1",
        name="Habit tracker",
        start_at="2025-01-01T00:00:00",
        prd="# Habit tracker",
        features=[
            Feature(id=1, title="Habits", description="Manage habits"),
            Feature(id=2, title="Streaks", description="Track streaks"),
        ],
        tasks=[
            Task(id="task-1", fid=1, title="Habit model", status="doing"),
            Task(id="task-2", fid=1, title="Habit form"),
            Task(id="task-3", fid=2, title="Streak counter", status="done"),
        ],
    )
