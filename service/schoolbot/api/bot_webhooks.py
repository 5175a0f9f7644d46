"""
Principal settings: connect the school's Telegram / Bale bot to its webhook.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from schoolbot.config import get_settings
from schoolbot.messenger.directory import SchoolDirectory, get_directory
from schoolbot.messenger.logging_config import bot_logger as logger
from schoolbot.messenger.providers import PROVIDERS, MessengerProvider, get_provider
from schoolbot.middleware.auth import get_user_id, verify_token
from schoolbot.services.webhook_registration import (
    WebhookRegistrationError,
    build_school_webhook_url,
    create_bot,
    fetch_webhook_info,
    get_platform_token,
    normalize_domain,
    set_webhook_enabled,
)

router = APIRouter(prefix="/api/principal/settings", tags=["bot-webhooks"])


class BotWebhookRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    platform: str
    enabled: bool = False
    token: Optional[str] = None
    chat_id: Optional[str] = Field(default=None, alias="chatId")
    bot_id: Optional[str] = Field(default=None, alias="botId")
    base_domain: Optional[str] = Field(default=None, alias="baseDomain")


def get_bot_factory():
    return create_bot


def _clean(value: Optional[str]) -> Optional[str]:
    return value.strip() if isinstance(value, str) and value.strip() else None


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


async def _load_principal(token_payload: dict, directory: SchoolDirectory):
    """Principal row for the caller, or an error response."""
    principal = await directory.get_principal_context(get_user_id(token_payload))
    if principal is None or principal.get("role") != "principal":
        return None, error_response("دسترسی غیرمجاز", 403)
    if not principal.get("school_id"):
        return None, error_response("مدرسه یافت نشد", 404)
    return principal, None


def _webhook_url(provider: MessengerProvider, principal: dict, request: Request) -> str:
    return build_school_webhook_url(
        provider,
        str(principal["school_id"]),
        principal.get("website_url"),
        get_settings().public_app_url or None,
        str(request.base_url),
    )


@router.get("/bot-webhooks")
async def get_bot_webhooks(
    request: Request,
    token_payload: dict = Depends(verify_token),
    directory: SchoolDirectory = Depends(get_directory),
    bot_factory=Depends(get_bot_factory),
):
    """Webhook status of both school bots."""
    principal, error = await _load_principal(token_payload, directory)
    if error:
        return error

    profile = principal.get("profile") or {}
    data = {
        "schoolId": principal["school_id"],
        "baseDomain": (
            normalize_domain(principal.get("website_url"))
            or normalize_domain(get_settings().public_app_url)
            or normalize_domain(str(request.base_url))
        ),
    }

    for provider in PROVIDERS.values():
        desired_url = _webhook_url(provider, principal, request)
        token = get_platform_token(provider, profile)
        info = await fetch_webhook_info(provider, token, bot_factory) if token else None
        data[provider.name] = {
            "desired_url": desired_url,
            "token_exists": bool(token),
            "enabled": bool(info and info.ok and info.url == desired_url),
            "current_url": info.url if info else "",
            "pending_update_count": info.pending_update_count if info else 0,
            "last_error_message": info.last_error_message if info else None,
        }

    return {"success": True, "data": data}


@router.post("/bot-webhooks")
async def update_bot_webhook(
    body: BotWebhookRequest,
    request: Request,
    token_payload: dict = Depends(verify_token),
    directory: SchoolDirectory = Depends(get_directory),
    bot_factory=Depends(get_bot_factory),
):
    """
    Enable or disable a school bot's webhook.

    Optionally stores a new bot token, the principal's chat/bot ids and the
    school's base domain before registering.
    """
    provider = get_provider(body.platform)
    if provider is None:
        return error_response("پلتفرم نامعتبر است", 400)

    principal, error = await _load_principal(token_payload, directory)
    if error:
        return error

    principal_id = str(principal["id"])
    school_id = str(principal["school_id"])
    profile = principal.get("profile") or {}

    incoming_token = _clean(body.token)
    incoming_base_domain = normalize_domain(body.base_domain)

    if body.enabled and not incoming_base_domain and not normalize_domain(principal.get("website_url")):
        return error_response("دامنه اصلی سایت را وارد کنید", 400)

    if incoming_base_domain:
        await directory.set_school_website(school_id, incoming_base_domain)
        principal["website_url"] = incoming_base_domain

    profile_updates = {}
    if _clean(body.chat_id):
        profile_updates[provider.chat_id_field] = _clean(body.chat_id)
    if _clean(body.bot_id):
        profile_updates[provider.bot_id_field] = _clean(body.bot_id)
    if incoming_token:
        profile_updates[provider.token_field] = incoming_token
    if profile_updates:
        profile = await directory.update_profile(principal_id, profile_updates)

    token = incoming_token or get_platform_token(provider, profile)
    if not token:
        name = "تلگرام" if provider.name == "telegram" else "بله"
        return error_response(f"توکن {name} وارد نشده است", 400)

    desired_url = _webhook_url(provider, principal, request)

    try:
        await set_webhook_enabled(
            provider, token, body.enabled, desired_url, bot_factory,
            secret_token=get_settings().webhook_secret or None,
        )
    except WebhookRegistrationError as e:
        return error_response(str(e), 400)

    info = await fetch_webhook_info(provider, token, bot_factory)
    if body.enabled:
        final_enabled = info.ok and info.url == desired_url
    else:
        final_enabled = False

    await directory.update_profile(principal_id, {
        provider.webhook_enabled_field: final_enabled,
        provider.webhook_url_field: desired_url if final_enabled else None,
    })
    logger.info(f"School {school_id} {provider.label} webhook enabled={final_enabled}")

    return {
        "success": True,
        "data": {
            "platform": provider.name,
            "enabled": final_enabled,
            "desired_url": desired_url,
            "current_url": info.url,
            "pending_update_count": info.pending_update_count,
            "last_error_message": info.last_error_message,
        },
    }
