"""Single-prompt completion against a local Ollama server or a hosted provider.

Hosted providers differ only in how they authenticate, what the request
body looks like and where the generated text sits in the response. Those
three concerns live in ``PROVIDER_PROTOCOLS``; any provider id not listed
there speaks the generic OpenAI-compatible dialect.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from ideaboard.config import settings
from ideaboard.errors import AuthError, ConfigError, TransportError
from ideaboard.models.settings import ModelConfig
from ideaboard.services.providers import find_model, find_provider

logger = logging.getLogger(__name__)

TEMPERATURE = 0.7
TOP_P = 0.9
MAX_TOKENS = 1000
ANTHROPIC_VERSION = "2023-06-01"


@dataclass(frozen=True)
class ProviderProtocol:
    build_headers: Callable[[str], dict[str, str]]
    build_body: Callable[[str, str], dict[str, Any]]
    extract_content: Callable[[Any], str]


def _bearer_headers(api_key: str) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {api_key}",
    }


def _anthropic_headers(api_key: str) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "x-api-key": api_key,
        "anthropic-version": ANTHROPIC_VERSION,
    }


def _chat_body(model: str, prompt: str) -> dict[str, Any]:
    return {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
        "temperature": TEMPERATURE,
        "max_tokens": MAX_TOKENS,
    }


def _choices_content(data: Any) -> str:
    """Read ``choices[0].message.content``."""
    try:
        return data["choices"][0]["message"]["content"] or ""
    except (KeyError, IndexError, TypeError):
        return ""


def _anthropic_content(data: Any) -> str:
    """Read ``content[0].text``."""
    try:
        return data["content"][0]["text"] or ""
    except (KeyError, IndexError, TypeError):
        return ""


GENERIC_PROTOCOL = ProviderProtocol(
    build_headers=_bearer_headers,
    build_body=_chat_body,
    extract_content=_choices_content,
)

PROVIDER_PROTOCOLS: dict[str, ProviderProtocol] = {
    "openai": GENERIC_PROTOCOL,
    "anthropic": ProviderProtocol(
        build_headers=_anthropic_headers,
        build_body=_chat_body,
        extract_content=_anthropic_content,
    ),
}


def protocol_for(provider_id: str) -> ProviderProtocol:
    return PROVIDER_PROTOCOLS.get(provider_id, GENERIC_PROTOCOL)


class CompletionClient:
    """Sends one prompt and returns the model's text.

    Exactly one outbound request per ``complete`` call: no retries, no
    caching. Cancelling the awaiting task aborts the request.
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ):
        self.transport = transport
        self.timeout = timeout if timeout is not None else settings.request_timeout

    async def complete(self, prompt: str, config: ModelConfig) -> str:
        if config.is_hosted:
            return await self._complete_hosted(prompt, config)
        return await self._complete_ollama(prompt, config)

    async def _complete_ollama(self, prompt: str, config: ModelConfig) -> str:
        endpoint = f"{config.ollama_url.rstrip('/')}/api/generate"
        body = {
            "model": config.model_name,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": TEMPERATURE, "top_p": TOP_P},
        }
        logger.info(
            f"Ollama completion: model={config.model_name} endpoint={endpoint} "
            f"prompt_chars={len(prompt)}"
        )
        data = await self._post(endpoint, {"Content-Type": "application/json"}, body)
        if not isinstance(data, dict):
            return ""
        return data.get("response") or ""

    async def _complete_hosted(self, prompt: str, config: ModelConfig) -> str:
        provider = find_provider(config.selected_provider)
        if provider is None:
            raise ConfigError(f"Unknown provider: {config.selected_provider!r}")
        model = find_model(provider.id, config.selected_model)
        if model is None:
            raise ConfigError(
                f"Unknown model {config.selected_model!r} for provider {provider.name}"
            )
        if not config.api_key:
            raise ConfigError(f"No API key configured for {provider.name}")
        endpoint = (
            config.custom_endpoint or model.endpoint or provider.default_endpoint
        )
        if not endpoint:
            raise ConfigError(f"No endpoint configured for {provider.name}")

        protocol = protocol_for(provider.id)
        logger.info(
            f"Hosted completion: provider={provider.id} model={model.id} "
            f"endpoint={endpoint} prompt_chars={len(prompt)}"
        )
        data = await self._post(
            endpoint,
            protocol.build_headers(config.api_key),
            protocol.build_body(model.id, prompt),
            label=provider.name,
            hosted=True,
        )
        return protocol.extract_content(data)

    async def _post(
        self,
        endpoint: str,
        headers: dict[str, str],
        body: dict[str, Any],
        label: str = "Ollama",
        hosted: bool = False,
    ) -> Any:
        try:
            async with httpx.AsyncClient(
                transport=self.transport, timeout=self.timeout
            ) as client:
                resp = await client.post(endpoint, headers=headers, json=body)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"{label} request to {endpoint} failed: {e}")
            raise TransportError(
                f"{label} request failed: {e}", endpoint=endpoint
            ) from e

        if resp.status_code == 401 and hosted:
            logger.warning(f"{label} rejected the API key ({endpoint})")
            raise AuthError(
                f"{label} rejected the API key (401). Check your credentials.",
                endpoint=endpoint,
            )
        if not resp.is_success:
            logger.error(
                f"{label} API error ({resp.status_code}) from {endpoint}: "
                f"{resp.text[:200]}"
            )
            raise TransportError(
                f"{label} API error: {resp.status_code} {resp.reason_phrase}",
                status=resp.status_code,
                endpoint=endpoint,
            )
        try:
            return resp.json()
        except ValueError as e:
            raise TransportError(
                f"{label} returned a non-JSON body",
                status=resp.status_code,
                endpoint=endpoint,
            ) from e
