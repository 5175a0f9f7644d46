"""
Deliver an AI reply to a messenger chat.

Provider bots cannot receive streamed text, so the reply is buffered in full,
flattened to plain text, split to the message limit and sent chunk by chunk.
Chunks already sent stay sent if a later one fails.
"""

import asyncio
import codecs
from typing import AsyncIterator

from .bot_api import MessengerBotAPI
from .formatting import format_for_messenger, split_long_message
from .logging_config import bot_logger as logger

EMPTY_REPLY_MESSAGE = "متأسفانه دستیار نتوانست پاسخی تولید کند. لطفاً دوباره تلاش کنید."
SEND_FAILED_MESSAGE = "خطا در ارسال پیام. لطفاً بعداً تلاش کنید."


async def collect_stream(stream: AsyncIterator[bytes]) -> str:
    """Read a byte stream to the end and decode it as UTF-8."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    parts = []
    async for chunk in stream:
        parts.append(decoder.decode(chunk))
    parts.append(decoder.decode(b"", final=True))
    return "".join(parts)


async def send_typing_indicator(api: MessengerBotAPI, token: str, chat_id: str) -> None:
    """Best-effort: the result is only logged."""
    result = await api.send_chat_action(token, chat_id)
    if not result.ok:
        logger.warning(f"Typing indicator failed for chat {chat_id}: {result.description}")


async def send_text(
    api: MessengerBotAPI,
    token: str,
    chat_id: str,
    text: str,
    max_length: int = 4000,
    chunk_delay: float = 0.1,
) -> int:
    """
    Format and send text in order. Returns the number of chunks delivered.
    """
    formatted = format_for_messenger(text) or text.strip()
    chunks = split_long_message(formatted, max_length)

    delivered = 0
    for chunk in chunks:
        result = await api.send_message(token, chat_id, chunk)
        if result.ok:
            delivered += 1
        else:
            logger.error(
                f"Failed to send message chunk to {api.provider.label} (chat {chat_id}): {result.description}"
            )

        # Small delay between messages to avoid rate limiting
        if len(chunks) > 1 and chunk_delay > 0:
            await asyncio.sleep(chunk_delay)

    if delivered < len(chunks):
        logger.warning(f"Partial delivery to chat {chat_id}: {delivered}/{len(chunks)} chunks")
    return delivered


async def send_ai_response(
    api: MessengerBotAPI,
    token: str,
    chat_id: str,
    stream: AsyncIterator[bytes],
    max_length: int = 4000,
    chunk_delay: float = 0.1,
) -> None:
    """
    Buffer the AI stream and deliver it.

    An empty reply is replaced with a localized notice. If the stream breaks
    while being read, a localized error message is sent instead.
    """
    try:
        full_response = await collect_stream(stream)
    except Exception as e:
        logger.error(f"Failed to read AI response for chat {chat_id}: {e}", exc_info=True)
        result = await api.send_message(token, chat_id, SEND_FAILED_MESSAGE)
        if not result.ok:
            logger.error(f"Failed to send fallback error message: {result.description}")
        return

    if not full_response.strip():
        full_response = EMPTY_REPLY_MESSAGE

    await send_text(api, token, chat_id, full_response, max_length, chunk_delay)
