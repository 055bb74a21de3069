# src/daer/core/llm.py
"""Uniform chat and streaming interface over the supported LLM backends.

Every backend family is a :class:`BaseProvider` subclass that routes through
``litellm.acompletion`` with its family prefix. Callers only see
:meth:`BaseProvider.chat` and :meth:`BaseProvider.stream_chat`; adding a
backend means adding a subclass and registering it in :data:`PROVIDERS`.
Errors from litellm or the transport surface as
:class:`~daer.core.errors.ProviderError` and are never retried here.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Callable
from typing import Any, ClassVar, Literal, Protocol

import litellm
from pydantic import BaseModel

from daer.core.errors import ProviderError, UnsupportedProviderError

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4000
DEFAULT_TOP_P = 1.0


class ProviderConfig(BaseModel):
    """Resolved provider settings for one generation."""

    provider: str
    model: str
    api_key: str
    base_url: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatResponse(BaseModel):
    content: str
    # Streaming responses from some backends do not report usage.
    tokens_used: int | None = None
    model: str


def _field(obj: Any, name: str) -> Any:
    """Read ``name`` from a dict-like or attribute-style litellm object."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _total_tokens(usage: Any) -> int | None:
    if usage is None:
        return None
    total = _field(usage, "total_tokens")
    if total is not None:
        return int(total)
    prompt = _field(usage, "prompt_tokens") or _field(usage, "input_tokens")
    completion = _field(usage, "completion_tokens") or _field(usage, "output_tokens")
    if prompt is None and completion is None:
        return None
    return int(prompt or 0) + int(completion or 0)


def _chunk_text(chunk: Any) -> str:
    if isinstance(chunk, str):
        return chunk
    choices = _field(chunk, "choices") or []
    if not choices:
        return ""
    delta = _field(choices[0], "delta")
    return _field(delta, "content") or ""


class ChatStream:
    """Async iterator over streamed text fragments.

    Fragments are yielded in generation order and accumulated; once the
    iterator is exhausted :attr:`response` holds the full text, the model
    name and the token usage when the backend reported one.
    """

    def __init__(self, source: AsyncIterator[Any], model: str) -> None:
        self._source = source
        self._model = model
        self._parts: list[str] = []
        self._tokens: int | None = None
        self._response: ChatResponse | None = None

    def __aiter__(self) -> ChatStream:
        return self

    async def __anext__(self) -> str:
        if self._response is not None:
            raise StopAsyncIteration
        while True:
            try:
                chunk = await anext(self._source)
            except StopAsyncIteration:
                self._response = ChatResponse(
                    content="".join(self._parts),
                    tokens_used=self._tokens,
                    model=self._model,
                )
                raise
            tokens = _total_tokens(_field(chunk, "usage"))
            if tokens is not None:
                self._tokens = tokens
            text = _chunk_text(chunk)
            if text:
                self._parts.append(text)
                return text

    @property
    def response(self) -> ChatResponse:
        if self._response is None:
            raise RuntimeError("Stream has not been fully consumed")
        return self._response

    async def collect(self) -> ChatResponse:
        """Drain the stream and return the final response."""
        async for _ in self:
            pass
        return self.response

    async def aclose(self) -> None:
        close = getattr(self._source, "aclose", None)
        if close is not None:
            await close()


class BaseProvider:
    """Common litellm-backed implementation of chat and streaming chat."""

    name: ClassVar[str]
    prefix: ClassVar[str]
    default_base_url: ClassVar[str | None] = None

    def __init__(self, config: ProviderConfig) -> None:
        self.config = config

    @property
    def litellm_model(self) -> str:
        model = self.config.model
        if model.startswith(f"{self.prefix}/"):
            return model
        return f"{self.prefix}/{model}"

    def completion_kwargs(
        self, messages: list[ChatMessage], *, stream: bool = False
    ) -> dict[str, Any]:
        cfg = self.config
        kwargs: dict[str, Any] = {
            "model": self.litellm_model,
            "messages": [m.model_dump() for m in messages],
            "api_key": cfg.api_key,
            "temperature": (
                cfg.temperature if cfg.temperature is not None else DEFAULT_TEMPERATURE
            ),
            "max_tokens": cfg.max_tokens or DEFAULT_MAX_TOKENS,
        }
        base_url = cfg.base_url or self.default_base_url
        if base_url:
            kwargs["api_base"] = base_url
        if stream:
            kwargs["stream"] = True
        return kwargs

    async def chat(self, messages: list[ChatMessage]) -> ChatResponse:
        kwargs = self.completion_kwargs(messages)
        started = time.monotonic()
        try:
            response = await litellm.acompletion(**kwargs)
        except Exception as exc:
            logger.warning(
                "LLM call failed",
                extra={"provider": self.name, "model": self.config.model},
            )
            raise ProviderError(str(exc) or type(exc).__name__) from exc

        choices = _field(response, "choices") or []
        if not choices:
            raise ProviderError("Provider returned no choices")
        content = _field(_field(choices[0], "message"), "content") or ""
        logger.debug(
            "LLM call finished",
            extra={
                "provider": self.name,
                "model": self.config.model,
                "duration": round(time.monotonic() - started, 3),
                "response_length": len(content),
            },
        )
        return ChatResponse(
            content=content,
            tokens_used=_total_tokens(_field(response, "usage")),
            model=self.config.model,
        )

    def stream_chat(self, messages: list[ChatMessage]) -> ChatStream:
        """Open a streaming completion; the request starts on first iteration."""
        return ChatStream(self._stream_chunks(messages), model=self.config.model)

    async def _stream_chunks(self, messages: list[ChatMessage]) -> AsyncIterator[Any]:
        kwargs = self.completion_kwargs(messages, stream=True)
        try:
            response = await litellm.acompletion(**kwargs)
            async for chunk in response:
                yield chunk
        except Exception as exc:
            logger.warning(
                "LLM stream failed",
                extra={"provider": self.name, "model": self.config.model},
            )
            raise ProviderError(str(exc) or type(exc).__name__) from exc


class OpenAIProvider(BaseProvider):
    name = "openai"
    prefix = "openai"

    def completion_kwargs(
        self, messages: list[ChatMessage], *, stream: bool = False
    ) -> dict[str, Any]:
        kwargs = super().completion_kwargs(messages, stream=stream)
        if not stream:
            kwargs["top_p"] = (
                self.config.top_p if self.config.top_p is not None else DEFAULT_TOP_P
            )
        return kwargs


class AnthropicProvider(BaseProvider):
    """Anthropic messages API; litellm lifts the system message out itself."""

    name = "anthropic"
    prefix = "anthropic"


class DeepSeekProvider(BaseProvider):
    name = "deepseek"
    prefix = "deepseek"
    default_base_url = "https://api.deepseek.com/v1"


PROVIDERS: dict[str, type[BaseProvider]] = {
    OpenAIProvider.name: OpenAIProvider,
    AnthropicProvider.name: AnthropicProvider,
    DeepSeekProvider.name: DeepSeekProvider,
}


class ChatProvider(Protocol):
    """What the agents need from a provider."""

    async def chat(self, messages: list[ChatMessage]) -> ChatResponse: ...

    def stream_chat(self, messages: list[ChatMessage]) -> ChatStream: ...


ProviderFactory = Callable[[ProviderConfig], ChatProvider]


def create_provider(config: ProviderConfig) -> BaseProvider:
    """Instantiate the adapter for ``config.provider``."""
    try:
        provider_cls = PROVIDERS[config.provider.lower()]
    except KeyError:
        raise UnsupportedProviderError(config.provider) from None
    return provider_cls(config)


__all__ = [
    "PROVIDERS",
    "AnthropicProvider",
    "BaseProvider",
    "ChatProvider",
    "ChatMessage",
    "ChatResponse",
    "ChatStream",
    "DeepSeekProvider",
    "OpenAIProvider",
    "ProviderConfig",
    "ProviderFactory",
    "create_provider",
]
