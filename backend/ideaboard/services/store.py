"""Durable storage of projects and of the model configuration."""

import base64
import json
import logging
from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ideaboard.config import settings
from ideaboard.errors import PersistError
from ideaboard.models.project import Feature, Project, ProjectRecord, Task, utcnow
from ideaboard.models.settings import ModelConfig, ModelSettingsRecord

logger = logging.getLogger(__name__)


class ProjectStore(Protocol):
    def list_all(self) -> list[Project]: ...

    def get_by_id(self, project_id: str) -> Project | None: ...

    def upsert(self, project: Project) -> None: ...

    def remove(self, project_id: str) -> None: ...


def _to_project(record: ProjectRecord) -> Project:
    return Project(
        id=record.id,
        name=record.name,
        start_at=record.start_at,
        prd=record.prd,
        features=[Feature.model_validate(f) for f in json.loads(record.features)],
        tasks=[Task.model_validate(t) for t in json.loads(record.tasks)],
    )


def _dump_list(items: list) -> str:
    return json.dumps(
        [i.model_dump(mode="json", by_alias=True, exclude_none=True) for i in items],
        ensure_ascii=False,
    )


class SqlProjectStore:
    """ProjectStore backed by the ``projects`` table."""

    def __init__(self, session: Session):
        self.session = session

    def list_all(self) -> list[Project]:
        records = self.session.exec(
            select(ProjectRecord).order_by(ProjectRecord.created_at)
        ).all()
        return [_to_project(r) for r in records]

    def get_by_id(self, project_id: str) -> Project | None:
        record = self.session.get(ProjectRecord, project_id)
        return _to_project(record) if record else None

    def upsert(self, project: Project) -> None:
        try:
            record = self.session.get(ProjectRecord, project.id)
            if record is None:
                record = ProjectRecord(id=project.id, name=project.name, start_at=project.start_at)
            record.name = project.name
            record.start_at = project.start_at
            record.prd = project.prd
            record.features = _dump_list(project.features)
            record.tasks = _dump_list(project.tasks)
            record.updated_at = utcnow()
            self.session.add(record)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Failed to save project {project.id}: {e}")
            raise PersistError(f"Failed to save project: {e}") from e

    def remove(self, project_id: str) -> None:
        try:
            record = self.session.get(ProjectRecord, project_id)
            if record is not None:
                self.session.delete(record)
                self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Failed to delete project {project_id}: {e}")
            raise PersistError(f"Failed to delete project: {e}") from e


# --- Model configuration ---


def _get_fernet() -> Fernet | None:
    """Return Fernet instance if encryption_key is configured, else None."""
    key = settings.encryption_key
    if not key or key == "change-me-in-production":
        return None
    try:
        return Fernet(key.encode())
    except ValueError:
        logger.warning("IDEABOARD_ENCRYPTION_KEY is not a valid Fernet key; using base64")
        return None


def encrypt_key(raw_key: str) -> str:
    """Encrypt an API key. Uses Fernet if available, else base64."""
    f = _get_fernet()
    if f:
        return f.encrypt(raw_key.encode()).decode()
    return base64.b64encode(raw_key.encode()).decode()


def decrypt_key(encrypted: str) -> str:
    """Decrypt an API key. Uses Fernet if available, else base64."""
    f = _get_fernet()
    if f:
        try:
            return f.decrypt(encrypted.encode()).decode()
        except InvalidToken:
            pass
    return base64.b64decode(encrypted.encode()).decode()


def mask_key(raw_key: str) -> str:
    """Mask an API key, showing only last 4 chars."""
    if not raw_key:
        return ""
    if len(raw_key) <= 4:
        return "****"
    return "*" * (len(raw_key) - 4) + raw_key[-4:]


def parse_config(data: dict) -> ModelConfig:
    """Build a ModelConfig from stored JSON, migrating the legacy OpenAI fields."""
    data = dict(data)
    legacy_endpoint = data.pop("openaiEndpoint", None)
    legacy_key = data.pop("openaiApiKey", None)
    if legacy_endpoint and legacy_key and not data.get("selectedProvider"):
        data["selectedProvider"] = "openai"
        data["customEndpoint"] = legacy_endpoint
        data["apiKey"] = legacy_key
        data["selectedModel"] = "gpt-4o"
    if not data.get("modelType"):
        data["modelType"] = "ollama"
    return ModelConfig.model_validate(data)


class ConfigStore:
    """The single stored model configuration (row id 1)."""

    ROW_ID = 1

    def __init__(self, session: Session):
        self.session = session

    def load(self) -> ModelConfig:
        record = self.session.get(ModelSettingsRecord, self.ROW_ID)
        if record is None:
            return ModelConfig()
        try:
            data = json.loads(record.data)
            if data.get("apiKey"):
                data["apiKey"] = decrypt_key(data["apiKey"])
            return parse_config(data)
        except (ValueError, AttributeError) as e:
            logger.error(f"Stored model config is unreadable, using defaults: {e}")
            return ModelConfig()

    def save(self, config: ModelConfig) -> None:
        data = config.model_dump(by_alias=True)
        if data.get("apiKey"):
            data["apiKey"] = encrypt_key(data["apiKey"])
        try:
            record = self.session.get(ModelSettingsRecord, self.ROW_ID)
            if record is None:
                record = ModelSettingsRecord(id=self.ROW_ID)
            record.data = json.dumps(data, ensure_ascii=False)
            self.session.add(record)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Failed to save model config: {e}")
            raise PersistError(f"Failed to save model config: {e}") from e


# --- Demo content ---

DEMO_PROJECT_ID = "demo-habit-tracker"

_DEMO_PRD = """# Product Requirements Document: Minimalist Habit Tracker Web App

## Overview
A clean, intuitive web application that helps users build and maintain positive habits through simple daily tracking.

## Core Features
- **Habit Creation**: Users can create custom habits with names and optional descriptions
- **Daily Tracking**: Simple checkbox interface to mark habits as completed each day
- **Visual Progress**: Clean streak counters and progress indicators
- **Responsive Design**: Works seamlessly across desktop and mobile devices

## User Experience
The app prioritizes simplicity and speed, allowing users to quickly check off completed habits without friction. Visual feedback encourages consistency through streak tracking and subtle animations."""

_DEMO_FEATURES = [
    (1, "Habit Management System", "Create, edit, and delete personal habits with custom names and descriptions"),
    (2, "Daily Check-in Interface", "Simple, fast checkbox interface for marking daily habit completion"),
    (3, "Progress Tracking", "Visual streak counters and completion statistics to motivate users"),
    (4, "Responsive Mobile Design", "Mobile-optimized interface for quick habit tracking on any device"),
]

_DEMO_TASKS = {
    1: [
        "Create habit data models and TypeScript interfaces",
        "Build habit creation form with validation",
        "Implement habit editing and deletion functionality",
        "Add localStorage persistence for habit data",
    ],
    2: [
        "Design daily habit list component",
        "Create checkbox interaction with smooth animations",
        "Build date navigation for viewing different days",
    ],
    3: [
        "Calculate and display current streaks",
        "Create progress visualization charts",
        "Add completion percentage statistics",
    ],
    4: [
        "Implement responsive grid layout",
        "Optimize touch interactions for mobile",
        "Test and refine mobile user experience",
    ],
}


def create_demo_project() -> Project:
    return Project(
        id=DEMO_PROJECT_ID,
        name="Habit Tracker Web App",
        start_at=utcnow().isoformat(),
        prd=_DEMO_PRD,
        features=[Feature(id=i, title=t, description=d) for i, t, d in _DEMO_FEATURES],
        tasks=[
            Task(id=f"task-{fid}-{n}", fid=fid, title=title)
            for fid, titles in _DEMO_TASKS.items()
            for n, title in enumerate(titles, start=1)
        ],
    )


def seed_demo_project(store: ProjectStore) -> bool:
    """Store the demo project when there are no projects yet."""
    if store.list_all():
        return False
    store.upsert(create_demo_project())
    logger.info("Seeded demo project")
    return True
