"""Provider adapters over litellm and provider configuration resolution."""

import litellm
import pytest

from daer.config import AIFallbackConfig
from daer.core.errors import ConfigurationError, ProviderError, UnsupportedProviderError
from daer.core.llm import (
    AnthropicProvider,
    ChatMessage,
    DeepSeekProvider,
    OpenAIProvider,
    ProviderConfig,
    create_provider,
)
from daer.models.schemas import AIConfigCreate, AIConfigUpdate
from daer.services import ai_settings

MESSAGES = [
    ChatMessage(role="system", content="你是作家"),
    ChatMessage(role="user", content="写一句话"),
]


def config(provider="openai", **overrides):
    values = dict(provider=provider, model="test-model", api_key="sk-test")
    values.update(overrides)
    return ProviderConfig(**values)


class FakeCompletion:
    """Stand-in for ``litellm.acompletion`` recording its keyword arguments."""

    def __init__(self, response=None, chunks=None, error=None):
        self.response = response
        self.chunks = chunks or []
        self.error = error
        self.kwargs = None

    async def __call__(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        if kwargs.get("stream"):
            return self._stream()
        return self.response

    async def _stream(self):
        for chunk in self.chunks:
            yield chunk


def completion_response(content, total_tokens=None):
    response = {"choices": [{"message": {"content": content}}]}
    if total_tokens is not None:
        response["usage"] = {"total_tokens": total_tokens}
    return response


def delta(text):
    return {"choices": [{"delta": {"content": text}}]}


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------


def test_create_provider_selects_family():
    assert isinstance(create_provider(config("openai")), OpenAIProvider)
    assert isinstance(create_provider(config("Anthropic")), AnthropicProvider)
    assert isinstance(create_provider(config("deepseek")), DeepSeekProvider)


def test_create_provider_rejects_unknown_family():
    with pytest.raises(UnsupportedProviderError) as exc:
        create_provider(config("mystery"))
    assert "mystery" in str(exc.value)


def test_openai_defaults_and_prefix():
    kwargs = OpenAIProvider(config()).completion_kwargs(MESSAGES)
    assert kwargs["model"] == "openai/test-model"
    assert kwargs["temperature"] == 0.7
    assert kwargs["max_tokens"] == 4000
    assert kwargs["top_p"] == 1.0
    assert "api_base" not in kwargs


def test_openai_stream_omits_top_p():
    kwargs = OpenAIProvider(config(top_p=0.9)).completion_kwargs(MESSAGES, stream=True)
    assert kwargs["stream"] is True
    assert "top_p" not in kwargs


def test_deepseek_default_base_url_and_override():
    assert DeepSeekProvider(config("deepseek")).completion_kwargs(MESSAGES)["api_base"] == (
        "https://api.deepseek.com/v1"
    )
    custom = DeepSeekProvider(config("deepseek", base_url="http://proxy/v1"))
    assert custom.completion_kwargs(MESSAGES)["api_base"] == "http://proxy/v1"


def test_anthropic_keeps_explicit_parameters():
    provider = AnthropicProvider(config("anthropic", temperature=0.2, max_tokens=800))
    kwargs = provider.completion_kwargs(MESSAGES)
    assert kwargs["model"] == "anthropic/test-model"
    assert kwargs["temperature"] == 0.2
    assert kwargs["max_tokens"] == 800
    assert "top_p" not in kwargs


def test_prefixed_model_is_not_prefixed_twice():
    assert OpenAIProvider(config(model="openai/gpt-4o")).litellm_model == "openai/gpt-4o"


@pytest.mark.asyncio
async def test_chat_returns_content_tokens_and_model(monkeypatch):
    fake = FakeCompletion(response=completion_response("一句话", total_tokens=12))
    monkeypatch.setattr(litellm, "acompletion", fake)

    response = await OpenAIProvider(config()).chat(MESSAGES)

    assert response.content == "一句话"
    assert response.tokens_used == 12
    assert response.model == "test-model"
    assert fake.kwargs["messages"] == [
        {"role": "system", "content": "你是作家"},
        {"role": "user", "content": "写一句话"},
    ]


@pytest.mark.asyncio
async def test_chat_wraps_backend_errors(monkeypatch):
    monkeypatch.setattr(litellm, "acompletion", FakeCompletion(error=RuntimeError("rate limited")))
    with pytest.raises(ProviderError, match="rate limited"):
        await DeepSeekProvider(config("deepseek")).chat(MESSAGES)


@pytest.mark.asyncio
async def test_stream_chat_yields_fragments_then_response(monkeypatch):
    chunks = [delta("第一"), delta(""), delta("第二"), {"choices": [], "usage": {"total_tokens": 30}}]
    fake = FakeCompletion(chunks=chunks)
    monkeypatch.setattr(litellm, "acompletion", fake)

    stream = OpenAIProvider(config()).stream_chat(MESSAGES)
    assert fake.kwargs is None  # nothing sent until iteration starts
    fragments = [text async for text in stream]

    assert fragments == ["第一", "第二"]
    assert stream.response.content == "第一第二"
    assert stream.response.tokens_used == 30


@pytest.mark.asyncio
async def test_stream_without_usage_reports_no_tokens(monkeypatch):
    monkeypatch.setattr(litellm, "acompletion", FakeCompletion(chunks=[delta("文")]))
    stream = AnthropicProvider(config("anthropic")).stream_chat(MESSAGES)
    response = await stream.collect()
    assert response.content == "文"
    assert response.tokens_used is None


@pytest.mark.asyncio
async def test_stream_response_unavailable_before_exhaustion(monkeypatch):
    monkeypatch.setattr(litellm, "acompletion", FakeCompletion(chunks=[delta("a"), delta("b")]))
    stream = OpenAIProvider(config()).stream_chat(MESSAGES)
    assert await anext(stream) == "a"
    with pytest.raises(RuntimeError):
        stream.response
    await stream.aclose()


@pytest.mark.asyncio
async def test_stream_errors_surface_as_provider_error(monkeypatch):
    monkeypatch.setattr(litellm, "acompletion", FakeCompletion(error=ConnectionError("reset")))
    stream = OpenAIProvider(config()).stream_chat(MESSAGES)
    with pytest.raises(ProviderError, match="reset"):
        await stream.collect()


# ---------------------------------------------------------------------------
# Configuration resolution
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_resolve_prefers_default_config(database, seed):
    async with database.session() as session:
        await ai_settings.create_config(
            session,
            seed.user_id,
            AIConfigCreate(provider="deepseek", model="deepseek-chat", api_key="sk-other"),
        )
        resolved = await ai_settings.resolve_provider_config(session, seed.user_id, None)
    assert resolved.provider == "openai"
    assert resolved.temperature == 0.5


@pytest.mark.asyncio
async def test_resolve_falls_back_to_environment(database):
    fallback = AIFallbackConfig(provider="deepseek", model="deepseek-chat", api_key="sk-env")
    async with database.session() as session:
        resolved = await ai_settings.resolve_provider_config(session, "nobody", fallback)
    assert resolved.provider == "deepseek"
    assert resolved.api_key == "sk-env"


@pytest.mark.asyncio
async def test_resolve_without_any_config_raises(database):
    async with database.session() as session:
        with pytest.raises(ConfigurationError, match="No AI configuration found"):
            await ai_settings.resolve_provider_config(
                session, "nobody", AIFallbackConfig(api_key=None)
            )


@pytest.mark.asyncio
async def test_marking_default_clears_other_defaults(database, seed):
    async with database.session() as session:
        created = await ai_settings.create_config(
            session,
            seed.user_id,
            AIConfigCreate(
                provider="anthropic",
                model="claude",
                api_key="sk-ant",
                parameters={"maxTokens": 2000},
            ),
        )
        await ai_settings.update_config(
            session, seed.user_id, created.id, AIConfigUpdate(is_default=True)
        )
        configs = await ai_settings.list_configs(session, seed.user_id)
    assert [c.is_default for c in configs] == [True, False]
    assert configs[0].id == created.id
    assert ai_settings.provider_config_from_row(configs[0]).max_tokens == 2000
