import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ideaboard.api.generations import router as generations_router
from ideaboard.api.projects import router as projects_router
from ideaboard.api.settings import router as settings_router
from ideaboard.config import settings
from ideaboard.database import init_db, session_scope
from ideaboard.services.store import SqlProjectStore, seed_demo_project

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    if settings.seed_demo_project:
        with session_scope() as session:
            seed_demo_project(SqlProjectStore(session))
    yield


app = FastAPI(title="ideaboard", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(projects_router, prefix="/api")
app.include_router(generations_router, prefix="/api")
app.include_router(settings_router, prefix="/api")


@app.get("/health")
async def health():
    return {"status": "ok"}
