from ideaboard.services.providers import (
    PROVIDERS,
    default_endpoint,
    find_model,
    find_provider,
)


def test_find_provider():
    provider = find_provider("anthropic")
    assert provider is not None
    assert provider.name == "Anthropic"
    assert provider.default_endpoint == "https://api.anthropic.com/v1/messages"


def test_find_provider_unknown():
    assert find_provider("nope") is None
    assert find_provider("") is None


def test_find_model():
    model = find_model("deepseek", "deepseek-chat")
    assert model is not None
    assert model.name == "DeepSeek-V3"


def test_find_model_unknown():
    assert find_model("openai", "gpt-0") is None
    assert find_model("nope", "gpt-4o") is None


def test_default_endpoint():
    assert default_endpoint("openai") == "https://api.openai.com/v1/chat/completions"
    assert default_endpoint("nope") == ""


def test_provider_ids_are_unique():
    ids = [p.id for p in PROVIDERS]
    assert len(ids) == len(set(ids))
    assert all(p.models for p in PROVIDERS)
