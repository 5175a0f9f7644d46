"""
Per-request messenger flow shared by the Telegram and Bale webhooks.

parse update -> identify user -> school bot token -> typing indicator
-> assistant proxy -> format, chunk and send.

There is no conversation state: each webhook call stands alone.
"""

from enum import Enum
from typing import Any, Optional

from schoolbot.services.assistant_proxy import AssistantProxyClient
from .bot_api import MessengerBotAPI
from .directory import SchoolDirectory
from .logging_config import bot_logger as logger
from .providers import MessengerProvider
from .sender import send_ai_response, send_typing_indicator
from .updates import parse_update


class PipelineOutcome(str, Enum):
    IGNORED = "ignored"              # no text / no chat / blank text
    UNKNOWN_USER = "unknown_user"
    NO_SCHOOL = "no_school"
    NO_CREDENTIAL = "no_credential"
    REPLIED = "replied"


async def handle_messenger_update(
    provider: MessengerProvider,
    payload: Any,
    directory: SchoolDirectory,
    proxy: AssistantProxyClient,
    bot_api: MessengerBotAPI,
    school_id: Optional[str] = None,
    max_length: int = 4000,
    chunk_delay: float = 0.1,
) -> PipelineOutcome:
    """
    Answer one inbound webhook update.

    When school_id is given (per-school webhook) the user must belong to that
    school and its bot token is used. Recognition failures are recorded as
    unknown interactions and produce no reply.
    """
    tag = f"[{provider.label} Webhook]" + (f"[School {school_id}]" if school_id else "")

    message = parse_update(payload)
    if message is None:
        return PipelineOutcome.IGNORED

    chat_id = message.chat_id
    text = message.text
    logger.info(f"{tag} Received message from chat {chat_id}: \"{text[:50]}...\"")

    user = await directory.identify_user_by_chat(provider, chat_id)

    if school_id is not None:
        if user is None or user.school_id != school_id:
            await directory.log_unknown_interaction(
                provider, chat_id, text, f"User not found for school {school_id}"
            )
            return PipelineOutcome.UNKNOWN_USER
    else:
        if user is None:
            await directory.log_unknown_interaction(
                provider, chat_id, text, f"User not found by {provider.chat_id_field}"
            )
            return PipelineOutcome.UNKNOWN_USER
        if not user.school_id:
            await directory.log_unknown_interaction(
                provider, chat_id, text, f"User {user.id} has no school_id"
            )
            return PipelineOutcome.NO_SCHOOL

    logger.info(f"{tag} Identified user: {user.name} ({user.role}) from school {user.school_id}")

    token = await directory.get_bot_token_for_school(provider, user.school_id)
    if not token:
        await directory.log_unknown_interaction(
            provider, chat_id, text, f"No bot token found for school {user.school_id}"
        )
        return PipelineOutcome.NO_CREDENTIAL

    await send_typing_indicator(bot_api, token, chat_id)

    model_source = user.model_source
    logger.info(f"{tag} Processing with {model_source} model")

    stream = await proxy.stream_reply(user, text, model_source)
    await send_ai_response(bot_api, token, chat_id, stream, max_length, chunk_delay)

    logger.info(f"{tag} Sent response to chat {chat_id}")
    return PipelineOutcome.REPLIED
