"""Static catalog of hosted model providers."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Model:
    id: str
    name: str
    endpoint: str | None = None


@dataclass(frozen=True)
class Provider:
    id: str
    name: str
    default_endpoint: str
    models: tuple[Model, ...] = field(default_factory=tuple)


PROVIDERS: tuple[Provider, ...] = (
    Provider(
        id="openai",
        name="OpenAI",
        default_endpoint="https://api.openai.com/v1/chat/completions",
        models=(
            Model("gpt-4.1", "GPT-4.1"),
            Model("gpt-4.1-mini", "GPT-4.1 Mini"),
            Model("gpt-4o", "GPT-4o"),
            Model("gpt-4o-mini", "GPT-4o Mini"),
            Model("o3", "o3"),
            Model("o1", "o1"),
            Model("o1-mini", "o1-mini"),
        ),
    ),
    Provider(
        id="anthropic",
        name="Anthropic",
        default_endpoint="https://api.anthropic.com/v1/messages",
        models=(
            Model("claude-opus-4-1", "Claude Opus 4.1"),
            Model("claude-opus-4", "Claude Opus 4"),
            Model("claude-sonnet-4", "Claude Sonnet 4"),
            Model("claude-3-7-sonnet", "Claude 3.7 Sonnet"),
            Model("claude-3-5-haiku", "Claude 3.5 Haiku"),
        ),
    ),
    Provider(
        id="gemini",
        name="Gemini",
        default_endpoint="https://generativelanguage.googleapis.com/v1beta/models",
        models=(
            Model("gemini-2.0-pro", "Gemini 2.0 Pro"),
            Model("gemini-2.0-flash", "Gemini 2.0 Flash"),
            Model("gemini-1.5-pro", "Gemini 1.5 Pro"),
            Model("gemini-1.5-flash", "Gemini 1.5 Flash"),
        ),
    ),
    Provider(
        id="grok",
        name="Grok",
        default_endpoint="https://api.x.ai",
        models=(
            Model("grok-beta", "Grok Beta"),
            Model("grok-2", "Grok-2"),
        ),
    ),
    Provider(
        id="zhipu",
        name="智谱清言",
        default_endpoint="https://open.bigmodel.cn/api/paas/v4/chat/completions",
        models=(
            Model("glm-4.5", "GLM-4.5"),
            Model("glm-4.5-air", "GLM-4.5 Air"),
            Model("glm-4-plus", "GLM-4 Plus"),
            Model("glm-4-flash", "GLM-4 Flash"),
        ),
    ),
    Provider(
        id="deepseek",
        name="DeepSeek",
        default_endpoint="https://api.deepseek.com/v1/chat/completions",
        models=(
            Model("deepseek-reasoner", "DeepSeek-R1"),
            Model("deepseek-chat", "DeepSeek-V3"),
        ),
    ),
    Provider(
        id="moonshot",
        name="Moonshot",
        default_endpoint="https://api.moonshot.cn/v1/chat/completions",
        models=(
            Model("kimi-k2-0905-preview", "Kimi K2 0905"),
            Model("kimi-k2-0711-preview", "Kimi K2 0711"),
            Model("moonshot-v1-128k", "Moonshot V1 128K"),
        ),
    ),
    Provider(
        id="alibaba",
        name="Aliyun",
        default_endpoint="https://dashscope.aliyuncs.com/api/v1/services/aigc/text-generation/generation",
        models=(
            Model("qwen-max", "Qwen Max"),
            Model("qwen-max-longcontext", "Qwen Max LongContext"),
            Model("qwen-plus", "Qwen Plus"),
            Model("qwen-turbo", "Qwen Turbo"),
            Model("qwen3-235b", "Qwen3 235B"),
        ),
    ),
    Provider(
        id="siliconflow",
        name="硅基流动",
        default_endpoint="https://api.siliconflow.cn/v1/chat/completions",
        models=(
            Model("Qwen/Qwen3-235B-A22B-Instruct", "Qwen3 235B"),
            Model("moonshotai/Kimi-K2-Instruct", "Kimi K2 Instruct"),
            Model("deepseek-ai/DeepSeek-R1", "DeepSeek-R1"),
            Model("deepseek-ai/DeepSeek-V3", "DeepSeek-V3"),
            Model("Qwen/Qwen2.5-72B-Instruct", "Qwen2.5 72B"),
        ),
    ),
)

_BY_ID = {p.id: p for p in PROVIDERS}


def find_provider(provider_id: str) -> Provider | None:
    return _BY_ID.get(provider_id)


def find_model(provider_id: str, model_id: str) -> Model | None:
    provider = find_provider(provider_id)
    if provider is None:
        return None
    return next((m for m in provider.models if m.id == model_id), None)


def default_endpoint(provider_id: str) -> str:
    """Return the provider's default endpoint, or "" if the provider is unknown."""
    provider = find_provider(provider_id)
    return provider.default_endpoint if provider else ""
