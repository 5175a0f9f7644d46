import secrets
from typing import Optional

import openai
from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.util import get_remote_address

from schoolbot.config import get_settings
from schoolbot.messenger.directory import SchoolDirectory, get_directory
from schoolbot.messenger.logging_config import assistant_logger as logger
from schoolbot.services.assistant import AssistantUnavailableError, stream_assistant_reply
from schoolbot.services.assistant_proxy import ASSISTANT_PATH

router = APIRouter(tags=["assistant"])


def messenger_user_key(request: Request) -> str:
    """Rate-limit per messenger user; proxied calls all come from loopback."""
    return request.headers.get("x-messenger-user-id") or get_remote_address(request)


# Rate limiter for the model-backed endpoint
limiter = Limiter(key_func=messenger_user_key)


class AssistantMessage(BaseModel):
    role: str
    content: str


class AssistantRequest(BaseModel):
    messages: list[AssistantMessage] = Field(min_length=1)


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


@router.post(ASSISTANT_PATH)
@limiter.limit("20/minute")
async def assistant_chat(
    request: Request,  # Required for rate limiter
    chat_request: AssistantRequest,
    x_messenger_user_id: Optional[str] = Header(None),
    x_messenger_auth: Optional[str] = Header(None),
    x_model_source: Optional[str] = Header(None),
    directory: SchoolDirectory = Depends(get_directory),
):
    """
    Stream an assistant reply for a messenger user.

    Called by the messenger bridge only; authenticated with the shared
    x-messenger-auth secret. Errors are JSON {"error": "..."} bodies.
    """
    settings = get_settings()
    expected = settings.messenger_auth_secret
    if not expected or not x_messenger_auth or not secrets.compare_digest(x_messenger_auth, expected):
        logger.warning(f"Rejected assistant call for user {x_messenger_user_id}: bad messenger auth")
        return error_response("احراز هویت پیام‌رسان نامعتبر است.", 401)

    if not x_messenger_user_id:
        return error_response("شناسه کاربر ارسال نشده است.", 400)

    user = await directory.get_user_by_id(x_messenger_user_id)
    if user is None:
        return error_response("کاربر یافت نشد.", 404)

    model_source = "local" if x_model_source == "local" else "cloud"
    messages = [m.model_dump() for m in chat_request.messages]

    try:
        deltas = await stream_assistant_reply(user.role, messages, model_source)
    except AssistantUnavailableError as e:
        logger.error(f"Assistant unavailable ({model_source}): {e}")
        return error_response(str(e), 503)
    except openai.OpenAIError as e:
        logger.error(f"Assistant model call failed ({model_source}): {e}", exc_info=True)
        return error_response("خطا در ارتباط با سرویس هوش مصنوعی.", 502)

    logger.info(f"Streaming assistant reply for {user.role} {user.id} ({model_source})")
    return StreamingResponse(deltas, media_type="text/plain; charset=utf-8")
