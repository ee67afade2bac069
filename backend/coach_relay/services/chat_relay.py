"""Streams coaching chat completions to clients as server-sent events."""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Iterable, Union

import openai
from openai import AsyncAzureOpenAI, AsyncOpenAI

from coach_relay.config import Settings
from coach_relay.errors import UpstreamRejected, UpstreamTimeout, UpstreamUnavailable
from coach_relay.schemas.chat import ChatMessage
from coach_relay.services.prompt_builder import PromptBuilder
from coach_relay.services.vault import CredentialVault

logger = logging.getLogger(__name__)

DONE_FRAME = "data: [DONE]\n\n"
EMPTY_REPLY = "Thinking... (no response yet)"

ChatClient = Union[AsyncOpenAI, AsyncAzureOpenAI]


def sse_frame(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def build_chat_client(settings: Settings, vault: CredentialVault) -> ChatClient | None:
    """Return an SDK client for the configured provider, or None if chat is unavailable."""
    if settings.provider == "openai":
        return AsyncOpenAI(
            api_key=vault.secret_value(),
            timeout=settings.chat_timeout_seconds,
            max_retries=settings.upstream_max_attempts - 1,
        )
    if settings.azure_openai_endpoint and settings.azure_openai_chat_deployment:
        return AsyncAzureOpenAI(
            azure_endpoint=settings.azure_openai_endpoint,
            api_key=vault.secret_value(),
            api_version=settings.azure_openai_api_version,
            timeout=settings.chat_timeout_seconds,
            max_retries=settings.upstream_max_attempts - 1,
        )
    logger.warning("AZURE_OPENAI_CHAT_DEPLOYMENT not set; chat relay disabled")
    return None


class ChatRelay:
    """Relays a conversation to the chat model with the coach persona prepended.

    Failures before the first chunk raise the usual relay errors. Once
    streaming has started the status is already sent, so a failure becomes
    an ``error`` frame followed by ``[DONE]``.
    """

    def __init__(
        self,
        client: ChatClient,
        model: str,
        prompt_builder: PromptBuilder,
        vault: CredentialVault,
        max_completion_tokens: int = 1200,
    ) -> None:
        self._client = client
        self._model = model
        self._prompt_builder = prompt_builder
        self._vault = vault
        self._max_completion_tokens = max_completion_tokens

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        vault: CredentialVault,
        prompt_builder: PromptBuilder,
        client: ChatClient | None = None,
    ) -> "ChatRelay | None":
        client = client or build_chat_client(settings, vault)
        if client is None:
            return None
        if settings.provider == "azure":
            model = settings.azure_openai_chat_deployment or settings.chat_model
        else:
            model = settings.chat_model
        return cls(
            client,
            model,
            prompt_builder,
            vault,
            max_completion_tokens=settings.chat_max_completion_tokens,
        )

    async def open_stream(
        self,
        history: Iterable[ChatMessage],
        display_name: str | None = None,
    ) -> AsyncIterator[str]:
        messages = [
            {"role": "system", "content": self._prompt_builder.build_instructions(display_name)}
        ]
        messages.extend({"role": m.role, "content": m.content} for m in history)

        try:
            stream = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                max_completion_tokens=self._max_completion_tokens,
                stream=True,
            )
        except openai.APITimeoutError as exc:
            logger.error("Chat completion timed out")
            raise UpstreamTimeout("Timed out waiting for the chat model") from exc
        except openai.APIConnectionError as exc:
            logger.error("Chat completion request failed: %s", self._vault.redact(str(exc)))
            raise UpstreamUnavailable("Chat model unreachable") from exc
        except openai.APIStatusError as exc:
            logger.error(
                "Chat completion returned %s: %s",
                exc.status_code,
                self._vault.redact(str(exc))[:300],
            )
            if exc.status_code < 500:
                raise UpstreamRejected(
                    f"Chat model rejected the request (status {exc.status_code})"
                ) from exc
            raise UpstreamUnavailable(
                f"Chat model unavailable (status {exc.status_code})"
            ) from exc

        return self._frames(stream)

    async def _frames(self, stream: AsyncIterator[Any]) -> AsyncIterator[str]:
        received = 0
        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    received += len(content)
                    yield sse_frame({"content": content})
            if not received:
                logger.warning("Chat stream finished without content")
                yield sse_frame({"content": EMPTY_REPLY})
            logger.info("Chat stream complete (%d chars)", received)
        except openai.OpenAIError as exc:
            logger.error("Chat stream failed: %s", self._vault.redact(str(exc)))
            yield sse_frame({"error": "stream_error"})
        yield DONE_FRAME

    async def aclose(self) -> None:
        await self._client.close()
