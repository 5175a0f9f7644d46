"""
Webhook endpoints for Telegram and Bale bots.

Every POST answers {"ok": true}, whatever happened inside: a non-2xx reply
would make the provider retry the same update over and over while an
internal dependency is down. Failures are logged instead.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Header, Request

from schoolbot.config import get_settings
from schoolbot.messenger.bot_api import MessengerBotAPI, get_bot_api
from schoolbot.messenger.directory import SchoolDirectory, get_directory
from schoolbot.messenger.logging_config import bot_logger as logger
from schoolbot.messenger.pipeline import handle_messenger_update
from schoolbot.messenger.providers import MessengerProvider, get_provider
from schoolbot.services.assistant_proxy import AssistantProxyClient, get_assistant_proxy

router = APIRouter(prefix="/api/webhook", tags=["webhooks"])


class ProviderName(str, Enum):
    telegram = "telegram"
    bale = "bale"


def get_bot_api_factory() -> Callable[[MessengerProvider], MessengerBotAPI]:
    return get_bot_api


def get_assistant_proxy_factory() -> Callable[[], AssistantProxyClient]:
    return get_assistant_proxy


async def _process_webhook(
    provider: MessengerProvider,
    request: Request,
    secret_token: Optional[str],
    directory: SchoolDirectory,
    proxy_factory: Callable[[], AssistantProxyClient],
    bot_api_factory: Callable[[MessengerProvider], MessengerBotAPI],
    school_id: Optional[str] = None,
) -> dict:
    try:
        settings = get_settings()
        if settings.webhook_secret and secret_token != settings.webhook_secret:
            logger.warning(f"[{provider.label} Webhook] Ignoring update with invalid secret token")
            return {"ok": True}

        payload = await request.json()
        outcome = await handle_messenger_update(
            provider,
            payload,
            directory=directory,
            proxy=proxy_factory(),
            bot_api=bot_api_factory(provider),
            school_id=school_id,
            max_length=settings.max_message_length,
            chunk_delay=settings.chunk_delay_seconds,
        )
        logger.debug(f"[{provider.label} Webhook] Update handled: {outcome.value}")
    except Exception as e:
        logger.error(f"[{provider.label} Webhook] Error processing webhook: {e}", exc_info=True)

    # Always acknowledge so the provider does not retry
    return {"ok": True}


@router.post("/{provider_name}")
async def messenger_webhook(
    provider_name: ProviderName,
    request: Request,
    x_telegram_bot_api_secret_token: str = Header(None),
    directory: SchoolDirectory = Depends(get_directory),
    proxy_factory=Depends(get_assistant_proxy_factory),
    bot_api_factory=Depends(get_bot_api_factory),
):
    """
    Receive an update from a school bot.

    The user is identified by the chat id in their profile; the reply goes
    out through the bot of the user's own school.
    """
    provider = get_provider(provider_name.value)
    return await _process_webhook(
        provider, request, x_telegram_bot_api_secret_token, directory, proxy_factory, bot_api_factory
    )


@router.post("/{provider_name}/{school_id}")
async def school_messenger_webhook(
    provider_name: ProviderName,
    school_id: str,
    request: Request,
    x_telegram_bot_api_secret_token: str = Header(None),
    directory: SchoolDirectory = Depends(get_directory),
    proxy_factory=Depends(get_assistant_proxy_factory),
    bot_api_factory=Depends(get_bot_api_factory),
):
    """Per-school webhook: only members of school_id are answered."""
    provider = get_provider(provider_name.value)
    return await _process_webhook(
        provider, request, x_telegram_bot_api_secret_token, directory, proxy_factory, bot_api_factory,
        school_id=school_id,
    )


@router.get("/{provider_name}")
async def messenger_webhook_health(provider_name: ProviderName):
    """Health check endpoint."""
    provider = get_provider(provider_name.value)
    return {
        "status": "active",
        "service": f"{provider.label} Webhook",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/{provider_name}/{school_id}")
async def school_messenger_webhook_health(provider_name: ProviderName, school_id: str):
    provider = get_provider(provider_name.value)
    return {
        "status": "active",
        "service": f"{provider.label} School Webhook",
        "schoolId": school_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
