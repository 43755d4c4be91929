from contextlib import contextmanager

import pytest

from ideaboard.errors import TransportError
from ideaboard.models.settings import ModelConfig
from ideaboard.services.completion import CompletionClient
from ideaboard.services.generation_runs import MAX_SETTLED_RUNS, GenerationRunManager

FEATURES_OUTPUT = '[{"id": 1, "title": "Core", "description": "x"}]'


def _manager(client, store) -> GenerationRunManager:
    @contextmanager
    def store_factory():
        yield store

    return GenerationRunManager(client=client, store_factory=store_factory)


@pytest.mark.asyncio
async def test_completed_run_persists_project(scripted_client, memory_store):
    manager = _manager(scripted_client("prd", FEATURES_OUTPUT, "junk"), memory_store)

    run = manager.start("habit tracker", ModelConfig())
    assert run.status == "running"
    await manager.wait(run.id)

    assert run.status == "completed"
    assert run.error is None
    assert run.project_id in memory_store.projects
    assert [s.status for s in run.steps] == ["completed"] * 4


@pytest.mark.asyncio
async def test_failed_run_reports_error(scripted_client, memory_store):
    client = scripted_client(TransportError("Ollama API error: 500", status=500))
    manager = _manager(client, memory_store)

    run = manager.start("habit tracker", ModelConfig())
    await manager.wait(run.id)

    assert run.status == "error"
    assert "500" in run.error
    assert run.steps[0].status == "error"
    assert memory_store.projects == {}


@pytest.mark.asyncio
async def test_cancelled_run_persists_nothing(scripted_client, memory_store):
    client = scripted_client("prd", scripted_client.BLOCK)
    manager = _manager(client, memory_store)

    run = manager.start("habit tracker", ModelConfig())
    await client.blocked.wait()
    manager.cancel(run.id)
    await manager.wait(run.id)

    assert run.status == "cancelled"
    assert run.error is None
    assert memory_store.projects == {}
    assert "error" not in [s.status for s in run.steps]


@pytest.mark.asyncio
async def test_cancel_finished_run_is_noop(scripted_client, memory_store):
    manager = _manager(scripted_client("prd", FEATURES_OUTPUT, "junk"), memory_store)
    run = manager.start("x", ModelConfig())
    await manager.wait(run.id)

    assert manager.cancel(run.id).status == "completed"


@pytest.mark.asyncio
async def test_unknown_run(scripted_client, memory_store):
    manager = _manager(scripted_client(), memory_store)
    assert manager.get("missing") is None
    assert manager.cancel("missing") is None
    assert await manager.wait("missing") is None


@pytest.mark.asyncio
async def test_locale_detected_from_idea(scripted_client, memory_store):
    manager = _manager(scripted_client("prd", "[]", "[]"), memory_store)
    run = manager.start("习惯追踪", ModelConfig())
    await manager.wait(run.id)
    assert run.locale == "zh"


@pytest.mark.asyncio
async def test_unexpected_error_settles_run(scripted_client, memory_store):
    client = scripted_client("prd", RuntimeError("socket exploded"))
    manager = _manager(client, memory_store)

    run = manager.start("habit tracker", ModelConfig())
    await manager.wait(run.id)

    assert run.status == "error"
    assert "socket exploded" in run.error
    assert [s.status for s in run.steps] == ["completed", "error", "pending", "pending"]
    assert memory_store.projects == {}


@pytest.mark.asyncio
async def test_malformed_endpoint_settles_run(memory_store):
    config = ModelConfig(
        model_type="online",
        selected_provider="openai",
        selected_model="gpt-4o",
        api_key="sk-test",
        custom_endpoint="http://[::1/v1",
    )
    manager = _manager(CompletionClient(), memory_store)

    run = manager.start("habit tracker", config)
    await manager.wait(run.id)

    assert run.status == "error"
    assert "request failed" in run.error
    assert run.steps[0].status == "error"
    assert memory_store.projects == {}


@pytest.mark.asyncio
async def test_finished_runs_are_pruned(scripted_client, memory_store):
    responses = ["prd", FEATURES_OUTPUT, "junk"] * (MAX_SETTLED_RUNS + 2)
    manager = _manager(scripted_client(*responses), memory_store)

    first = manager.start("habit tracker", ModelConfig())
    await manager.wait(first.id)
    for _ in range(MAX_SETTLED_RUNS):
        run = manager.start("habit tracker", ModelConfig())
        await manager.wait(run.id)
    latest = manager.start("habit tracker", ModelConfig())

    assert manager.get(first.id) is None
    assert manager.get(latest.id) is latest
    assert len(manager.runs) == MAX_SETTLED_RUNS + 1
    await manager.wait(latest.id)
