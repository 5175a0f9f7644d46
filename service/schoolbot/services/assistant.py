"""
Streaming school assistant backed by OpenAI chat completions.

"cloud" uses the OpenAI API; "local" uses an OpenAI-compatible server
(for example llama.cpp or vLLM) at LOCAL_AI_BASE_URL.
"""

from typing import AsyncIterator

from openai import AsyncOpenAI

from schoolbot.config import get_settings
from .prompts import get_role_prompt

TEMPERATURE = 0.7
MAX_TOKENS = 2000
MAX_HISTORY_MESSAGES = 20


class AssistantUnavailableError(Exception):
    """The selected model backend is not configured."""


def get_openai_client(model_source: str) -> AsyncOpenAI:
    settings = get_settings()
    if model_source == "local":
        return AsyncOpenAI(api_key=settings.local_ai_api_key, base_url=settings.local_ai_base_url)

    if not settings.openai_api_key:
        raise AssistantUnavailableError("کلید API سرویس هوش مصنوعی تنظیم نشده است.")
    return AsyncOpenAI(api_key=settings.openai_api_key)


def resolve_model(model_source: str) -> str:
    settings = get_settings()
    return settings.local_ai_model if model_source == "local" else settings.openai_model


def build_messages(role: str, messages: list[dict]) -> list[dict]:
    """Prepend the role system prompt; keep only user/assistant turns."""
    history = [
        {"role": m["role"], "content": m["content"]}
        for m in messages
        if m.get("role") in ("user", "assistant") and isinstance(m.get("content"), str)
    ]
    return [{"role": "system", "content": get_role_prompt(role)}] + history[-MAX_HISTORY_MESSAGES:]


async def stream_assistant_reply(
    role: str, messages: list[dict], model_source: str = "cloud"
) -> AsyncIterator[str]:
    """
    Start a streamed completion and return an iterator over text deltas.

    The request is sent before the first delta so configuration and
    connection errors raise here rather than mid-stream.
    """
    client = get_openai_client(model_source)
    stream = await client.chat.completions.create(
        model=resolve_model(model_source),
        messages=build_messages(role, messages),
        temperature=TEMPERATURE,
        max_tokens=MAX_TOKENS,
        stream=True,
    )

    async def deltas() -> AsyncIterator[str]:
        async for chunk in stream:
            if not chunk.choices:
                continue
            content = chunk.choices[0].delta.content
            if content:
                yield content

    return deltas()
