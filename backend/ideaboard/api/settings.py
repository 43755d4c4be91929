"""Settings API endpoints — model configuration and provider catalog."""

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ideaboard.api.deps import get_config_store, to_http_error
from ideaboard.errors import IdeaboardError
from ideaboard.models.settings import ModelConfig
from ideaboard.services.providers import PROVIDERS, find_model, find_provider
from ideaboard.services.store import ConfigStore, mask_key

router = APIRouter(prefix="/settings", tags=["settings"])


# --- Pydantic models ---


class ModelResponse(BaseModel):
    id: str
    name: str


class ProviderResponse(BaseModel):
    id: str
    name: str
    default_endpoint: str
    models: list[ModelResponse]


class ModelConfigUpdate(BaseModel):
    model_type: Literal["ollama", "online"]
    ollama_url: str | None = None
    model_name: str | None = None
    selected_provider: str | None = None
    selected_model: str | None = None
    custom_endpoint: str | None = None
    api_key: str | None = None

    model_config = {"protected_namespaces": ()}


class ModelConfigResponse(BaseModel):
    model_type: str
    ollama_url: str
    model_name: str
    selected_provider: str
    selected_model: str
    custom_endpoint: str
    masked_api_key: str

    model_config = {"protected_namespaces": ()}


def _to_response(config: ModelConfig) -> ModelConfigResponse:
    return ModelConfigResponse(
        model_type=config.model_type,
        ollama_url=config.ollama_url,
        model_name=config.model_name,
        selected_provider=config.selected_provider,
        selected_model=config.selected_model,
        custom_endpoint=config.custom_endpoint,
        masked_api_key=mask_key(config.api_key),
    )


# --- Endpoints ---


@router.get("/providers", response_model=list[ProviderResponse])
async def list_providers():
    return [
        ProviderResponse(
            id=p.id,
            name=p.name,
            default_endpoint=p.default_endpoint,
            models=[ModelResponse(id=m.id, name=m.name) for m in p.models],
        )
        for p in PROVIDERS
    ]


@router.get("/model", response_model=ModelConfigResponse)
async def get_model_config(store: ConfigStore = Depends(get_config_store)):
    return _to_response(store.load())


@router.put("/model", response_model=ModelConfigResponse)
async def save_model_config(
    body: ModelConfigUpdate,
    store: ConfigStore = Depends(get_config_store),
):
    """Save the model configuration. Omitted fields keep their stored values."""
    current = store.load()
    update_data = body.model_dump(exclude_unset=True, exclude_none=True)
    if "api_key" in update_data:
        update_data["api_key"] = update_data["api_key"].strip()
    config = current.model_copy(update=update_data)

    if config.is_hosted:
        provider = find_provider(config.selected_provider)
        if provider is None:
            raise HTTPException(status_code=400, detail="Unknown provider")
        if find_model(provider.id, config.selected_model) is None:
            raise HTTPException(status_code=400, detail="Unknown model")
        if not config.api_key:
            raise HTTPException(status_code=400, detail="API key cannot be empty")
        if not config.custom_endpoint:
            config = config.model_copy(
                update={"custom_endpoint": provider.default_endpoint}
            )
    elif not config.ollama_url.strip() or not config.model_name.strip():
        raise HTTPException(
            status_code=400, detail="Ollama URL and model name are required"
        )

    try:
        store.save(config)
    except IdeaboardError as e:
        raise to_http_error(e)
    return _to_response(config)
