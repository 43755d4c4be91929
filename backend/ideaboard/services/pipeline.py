"""Four-stage project generation: PRD, features, tasks, finalize.

Stages run strictly in order because each consumes the previous stage's
output. Network calls are the only suspension points; a
``CancellationToken`` is checked before every stage and after every call,
and cancelling also aborts the call currently in flight.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ideaboard.errors import GenerationCancelled, ParseError
from ideaboard.models.generation import GenerationStep
from ideaboard.models.project import (
    TASK_STATUSES,
    Feature,
    Priority,
    Project,
    Task,
    utcnow,
)
from ideaboard.models.settings import ModelConfig
from ideaboard.services.completion import CompletionClient
from ideaboard.services.extraction import extract_json
from ideaboard.services.prompts import (
    Locale,
    detect_locale,
    fallback_features,
    fallback_tasks,
    features_prompt,
    prd_prompt,
    tasks_prompt,
)
from ideaboard.services.store import ProjectStore

logger = logging.getLogger(__name__)

STEP_TITLES = ("document", "features", "tasks", "finalize")


class CancellationToken:
    """Cooperative cancellation shared between a run and whoever may stop it."""

    def __init__(self):
        self._cancelled = False
        self._inflight: asyncio.Future | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise GenerationCancelled("Generation cancelled")

    async def run(self, coro) -> Any:
        """Await ``coro`` as an abortable task bound to this token."""
        if self._cancelled:
            coro.close()
            raise GenerationCancelled("Generation cancelled")
        task = asyncio.ensure_future(coro)
        self._inflight = task
        try:
            result = await task
        except asyncio.CancelledError:
            if self._cancelled:
                raise GenerationCancelled("Generation cancelled") from None
            raise
        finally:
            self._inflight = None
        self.raise_if_cancelled()
        return result


@dataclass(frozen=True)
class GeneratedProject:
    prd: str
    features: list[Feature]
    tasks: list[Task]


_PRIORITY_ALIASES = {
    "musthave": Priority.MUST_HAVE,
    "must": Priority.MUST_HAVE,
    "shouldhave": Priority.SHOULD_HAVE,
    "should": Priority.SHOULD_HAVE,
    "couldhave": Priority.COULD_HAVE,
    "could": Priority.COULD_HAVE,
    "wonthave": Priority.WONT_HAVE,
    "wont": Priority.WONT_HAVE,
}


def normalize_priority(value: Any) -> Priority | None:
    """Map free-form MoSCoW spellings ("Must have", "must-have", ...) to the enum."""
    if not isinstance(value, str):
        return None
    key = "".join(ch for ch in value.lower() if ch.isalpha())
    return _PRIORITY_ALIASES.get(key)


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def parse_features(raw_text: str) -> list[Feature]:
    """Turn the features-stage output into features with ids 1..n.

    Ids are kept when they are distinct positive integers, otherwise the
    features are renumbered in order. Raises ParseError if nothing usable
    is found.
    """
    data = extract_json(raw_text, "array")
    if not isinstance(data, list):
        raise ParseError("No JSON array in features output")

    items = [
        item
        for item in data
        if isinstance(item, dict) and str(item.get("title") or "").strip()
    ]
    if not items:
        raise ParseError("Features output contained no titled features")

    ids = [_as_int(item.get("id")) for item in items]
    keep_ids = all(i is not None and i > 0 for i in ids) and len(set(ids)) == len(ids)
    return [
        Feature(
            id=ids[n] if keep_ids else n + 1,
            title=str(item["title"]).strip(),
            description=str(item.get("description") or ""),
        )
        for n, item in enumerate(items)
    ]


def parse_tasks(raw_text: str, features: list[Feature]) -> list[Task]:
    """Turn the tasks-stage output into tasks that all reference ``features``.

    Accepts ``{"tasks": [...]}`` or a bare array. A task whose ``fid`` does
    not resolve is matched to a feature by its ``tag``; if that fails too it
    is dropped. Raises ParseError if no task survives.
    """
    data = extract_json(raw_text, "object")
    items = data.get("tasks") if isinstance(data, dict) else None
    if not isinstance(items, list):
        items = extract_json(raw_text, "array")
    if not isinstance(items, list):
        raise ParseError("No tasks JSON in tasks output")

    by_id = {f.id: f for f in features}
    by_title = {f.title.strip().lower(): f for f in features}

    tasks: list[Task] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            continue
        title = str(item.get("title") or "").strip()
        if not title:
            continue
        feature = by_id.get(_as_int(item.get("fid")))
        if feature is None and isinstance(item.get("tag"), str):
            feature = by_title.get(item["tag"].strip().lower())
        if feature is None:
            logger.debug(f"Dropping task {title!r}: no matching feature")
            continue
        status = item.get("status")
        duration = _as_int(item.get("duration"))
        end_date = item.get("estimatedEndDate")
        tasks.append(
            Task(
                id=f"task-{feature.id}-{index + 1}",
                fid=feature.id,
                title=title,
                description=item.get("description") if isinstance(item.get("description"), str) else None,
                status=status if status in TASK_STATUSES else "todo",
                priority=normalize_priority(item.get("priority")),
                tag=feature.title,
                estimated_end_date=end_date if isinstance(end_date, str) else None,
                duration=duration,
            )
        )
    if not tasks:
        raise ParseError("Tasks output contained no task tied to a known feature")
    return tasks


def project_name_from_idea(idea: str) -> str:
    return " ".join(idea.split()[:5])


class GenerationPipeline:
    """One generation run. Not reusable: create a new pipeline per run."""

    def __init__(
        self,
        client: CompletionClient,
        config: ModelConfig,
        token: CancellationToken | None = None,
        store: ProjectStore | None = None,
        on_step: Callable[[GenerationStep], None] | None = None,
    ):
        self.client = client
        self.config = config
        self.token = token or CancellationToken()
        self.store = store
        self.on_step = on_step
        self.steps = [
            GenerationStep(step=n, title=title)
            for n, title in enumerate(STEP_TITLES, start=1)
        ]

    def _set_status(self, step: int, status: str) -> None:
        current = self.steps[step - 1]
        current.status = status
        logger.info(f"Generation step {step} ({current.title}): {status}")
        if self.on_step:
            self.on_step(current)

    async def _stage(self, step: int, work):
        self.token.raise_if_cancelled()
        self._set_status(step, "generating")
        try:
            result = await work()
        except GenerationCancelled:
            raise
        except Exception:
            self._set_status(step, "error")
            raise
        self._set_status(step, "completed")
        return result

    async def _complete(self, prompt: str) -> str:
        return await self.token.run(self.client.complete(prompt, self.config))

    async def generate(self, idea: str, locale: Locale | None = None) -> GeneratedProject:
        """Run the document, features and tasks stages."""
        locale = locale or detect_locale(idea)

        async def document() -> str:
            return await self._complete(prd_prompt(idea, locale))

        prd = await self._stage(1, document)

        async def extract_features() -> list[Feature]:
            raw = await self._complete(features_prompt(prd, locale))
            try:
                return parse_features(raw)
            except ParseError as e:
                logger.warning(f"Using fallback features: {e}")
                return fallback_features(locale)

        features = await self._stage(2, extract_features)

        async def derive_tasks() -> list[Task]:
            raw = await self._complete(tasks_prompt(features, locale))
            try:
                return parse_tasks(raw, features)
            except ParseError as e:
                logger.warning(f"Using fallback tasks: {e}")
                return fallback_tasks(features, locale)

        tasks = await self._stage(3, derive_tasks)
        return GeneratedProject(prd=prd, features=features, tasks=tasks)

    async def run(
        self,
        idea: str,
        locale: Locale | None = None,
        project_id: str | None = None,
    ) -> Project:
        """Run all four stages and return (and persist, if a store is set) the project.

        ``project_id`` regenerates an existing project in place.
        """
        try:
            generated = await self.generate(idea, locale)

            async def finalize() -> Project:
                project = Project(
                    id=project_id or str(uuid.uuid4()),
                    name=project_name_from_idea(idea),
                    start_at=utcnow().isoformat(),
                    prd=generated.prd,
                    features=generated.features,
                    tasks=generated.tasks,
                )
                if self.store is not None:
                    self.store.upsert(project)
                return project

            return await self._stage(4, finalize)
        except GenerationCancelled:
            logger.info("Project generation was cancelled")
            raise


async def generate_project(
    idea: str,
    locale: Locale | None,
    config: ModelConfig,
    client: CompletionClient | None = None,
) -> GeneratedProject:
    """Generate a PRD, features and tasks for ``idea``.

    Never fails because of unparsable model output; may raise ConfigError,
    AuthError or TransportError.
    """
    pipeline = GenerationPipeline(client or CompletionClient(), config)
    return await pipeline.generate(idea, locale)
