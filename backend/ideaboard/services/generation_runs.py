"""Background generation runs that a client can poll and cancel."""

import asyncio
import logging
import uuid
from collections.abc import Callable
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass, field
from typing import Literal

from ideaboard.database import session_scope
from ideaboard.errors import GenerationCancelled, IdeaboardError
from ideaboard.models.generation import GenerationStep
from ideaboard.models.settings import ModelConfig
from ideaboard.services.completion import CompletionClient
from ideaboard.services.pipeline import CancellationToken, GenerationPipeline
from ideaboard.services.prompts import Locale, detect_locale
from ideaboard.services.store import ProjectStore, SqlProjectStore

logger = logging.getLogger(__name__)

RunStatus = Literal["running", "completed", "cancelled", "error"]

# Finished runs kept for polling; older ones are dropped as new runs start.
MAX_SETTLED_RUNS = 50


@contextmanager
def default_store_factory():
    with session_scope() as session:
        yield SqlProjectStore(session)


@dataclass
class GenerationRun:
    id: str
    idea: str
    locale: Locale
    steps: list[GenerationStep]
    token: CancellationToken
    target_project_id: str | None = None
    status: RunStatus = "running"
    error: str | None = None
    project_id: str | None = None
    task: asyncio.Task | None = field(default=None, repr=False)


class GenerationRunManager:
    def __init__(
        self,
        client: CompletionClient | None = None,
        store_factory: Callable[[], AbstractContextManager[ProjectStore]] = default_store_factory,
    ):
        self.client = client or CompletionClient()
        self.store_factory = store_factory
        self.runs: dict[str, GenerationRun] = {}

    def start(
        self,
        idea: str,
        config: ModelConfig,
        locale: Locale | None = None,
        project_id: str | None = None,
    ) -> GenerationRun:
        """Schedule a run on the current event loop and return it immediately."""
        token = CancellationToken()
        run = GenerationRun(
            id=uuid.uuid4().hex,
            idea=idea,
            locale=locale or detect_locale(idea),
            steps=[],
            token=token,
            target_project_id=project_id,
        )
        pipeline = GenerationPipeline(self.client, config, token=token)
        run.steps = pipeline.steps
        self._prune()
        self.runs[run.id] = run
        run.task = asyncio.create_task(self._execute(run, pipeline))
        logger.info(f"Started generation run {run.id}")
        return run

    async def _execute(self, run: GenerationRun, pipeline: GenerationPipeline) -> None:
        try:
            with self.store_factory() as store:
                pipeline.store = store
                project = await pipeline.run(
                    run.idea, run.locale, project_id=run.target_project_id
                )
            run.project_id = project.id
            run.status = "completed"
        except GenerationCancelled:
            run.status = "cancelled"
        except IdeaboardError as e:
            logger.error(f"Generation run {run.id} failed: {e}")
            run.status = "error"
            run.error = str(e)
        except Exception as e:
            logger.exception(f"Generation run {run.id} crashed")
            run.status = "error"
            run.error = f"Unexpected error: {e}"
        except asyncio.CancelledError:
            run.status = "cancelled"
            raise

    def _prune(self) -> None:
        settled = [
            run_id
            for run_id, run in self.runs.items()
            if run.status != "running" and (run.task is None or run.task.done())
        ]
        excess = len(settled) - MAX_SETTLED_RUNS
        if excess > 0:
            for run_id in settled[:excess]:
                del self.runs[run_id]
            logger.debug(f"Dropped {excess} finished generation runs")

    def get(self, run_id: str) -> GenerationRun | None:
        return self.runs.get(run_id)

    def cancel(self, run_id: str) -> GenerationRun | None:
        run = self.runs.get(run_id)
        if run is None:
            return None
        if run.status == "running":
            run.token.cancel()
            run.status = "cancelled"
            logger.info(f"Cancelled generation run {run.id}")
        return run

    async def wait(self, run_id: str) -> GenerationRun | None:
        """Wait for a run's background task to settle."""
        run = self.runs.get(run_id)
        if run is not None and run.task is not None:
            await asyncio.gather(run.task, return_exceptions=True)
        return run
