from fastapi import Depends, HTTPException
from sqlmodel import Session

from ideaboard.database import get_session
from ideaboard.errors import (
    AuthError,
    ConfigError,
    IdeaboardError,
    PersistError,
    TransportError,
    UnknownEntityError,
)
from ideaboard.services.generation_runs import GenerationRunManager
from ideaboard.services.store import ConfigStore, SqlProjectStore

generation_runs = GenerationRunManager()


def get_project_store(session: Session = Depends(get_session)) -> SqlProjectStore:
    return SqlProjectStore(session)


def get_config_store(session: Session = Depends(get_session)) -> ConfigStore:
    return ConfigStore(session)


def get_generation_manager() -> GenerationRunManager:
    return generation_runs


def to_http_error(error: IdeaboardError) -> HTTPException:
    if isinstance(error, UnknownEntityError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ConfigError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, AuthError):
        return HTTPException(status_code=401, detail=str(error))
    if isinstance(error, TransportError):
        return HTTPException(status_code=502, detail=str(error))
    if isinstance(error, PersistError):
        return HTTPException(status_code=503, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))
