"""
Register per-school webhooks with Telegram / Bale.

Uses python-telegram-bot's Bot with the provider's base URL; Bale accepts the
same setWebhook / deleteWebhook / getWebhookInfo calls as Telegram.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlparse

from telegram import Bot
from telegram.error import TelegramError

from schoolbot.messenger.logging_config import bot_logger as logger
from schoolbot.messenger.providers import MessengerProvider

DEFAULT_BASE_URL = "http://localhost:8000"


class WebhookRegistrationError(Exception):
    """The provider refused to set or delete the webhook."""


@dataclass
class WebhookStatus:
    ok: bool
    url: str = ""
    pending_update_count: int = 0
    last_error_message: Optional[str] = None


BotFactory = Callable[[MessengerProvider, str], Any]


def create_bot(provider: MessengerProvider, token: str) -> Bot:
    return Bot(token=token, base_url=provider.api_base)


def normalize_domain(raw_url: Optional[str]) -> Optional[str]:
    """
    Reduce a URL or bare domain to "scheme://host[:port]".

    "school.ir/path" -> "https://school.ir". Returns None for empty or
    unparseable input.
    """
    if not raw_url:
        return None
    trimmed = raw_url.strip()
    if not trimmed:
        return None
    if not trimmed.lower().startswith(("http://", "https://")):
        trimmed = f"https://{trimmed}"
    try:
        parsed = urlparse(trimmed)
    except ValueError:
        return None
    if not parsed.netloc:
        return None
    return f"{parsed.scheme.lower()}://{parsed.netloc}"


def build_school_webhook_url(
    provider: MessengerProvider,
    school_id: str,
    school_website_url: Optional[str] = None,
    fallback_base_url: Optional[str] = None,
    request_origin: Optional[str] = None,
) -> str:
    """Webhook URL for a school: website domain, then public URL, then request origin."""
    base_url = (
        normalize_domain(school_website_url)
        or normalize_domain(fallback_base_url)
        or normalize_domain(request_origin)
        or DEFAULT_BASE_URL
    )
    return f"{base_url}/api/webhook/{provider.name}/{school_id}"


def get_platform_token(provider: MessengerProvider, profile: Optional[Dict[str, Any]]) -> Optional[str]:
    if not isinstance(profile, dict):
        return None
    value = profile.get(provider.token_field)
    return value.strip() if isinstance(value, str) and value.strip() else None


async def fetch_webhook_info(
    provider: MessengerProvider,
    token: str,
    bot_factory: BotFactory = create_bot,
) -> WebhookStatus:
    """Current webhook registration as seen by the provider. Never raises."""
    try:
        async with bot_factory(provider, token) as bot:
            info = await bot.get_webhook_info()
    except TelegramError as e:
        logger.warning(f"{provider.label} getWebhookInfo failed: {e}")
        return WebhookStatus(ok=False, last_error_message=str(e))

    return WebhookStatus(
        ok=True,
        url=info.url or "",
        pending_update_count=info.pending_update_count or 0,
        last_error_message=info.last_error_message,
    )


async def set_webhook_enabled(
    provider: MessengerProvider,
    token: str,
    enabled: bool,
    webhook_url: str,
    bot_factory: BotFactory = create_bot,
    secret_token: Optional[str] = None,
) -> None:
    """
    Point the bot at webhook_url, or remove its webhook.

    secret_token is echoed back by the provider in the
    X-Telegram-Bot-Api-Secret-Token header of every update. Pending updates
    are kept when disabling.
    """
    try:
        async with bot_factory(provider, token) as bot:
            if enabled:
                done = await bot.set_webhook(url=webhook_url, secret_token=secret_token)
            else:
                done = await bot.delete_webhook(drop_pending_updates=False)
    except TelegramError as e:
        logger.error(f"{provider.label} webhook {'set' if enabled else 'delete'} failed: {e}")
        raise WebhookRegistrationError(e.message) from e

    if not done:
        raise WebhookRegistrationError(
            "خطا در فعال‌سازی وب‌هوک" if enabled else "خطا در غیرفعال‌سازی وب‌هوک"
        )
    logger.info(f"{provider.label} webhook {'set to ' + webhook_url if enabled else 'deleted'}")
