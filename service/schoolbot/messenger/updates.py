"""
Webhook payload types.

Telegram and Bale send the same update structure. Only the fields the bridge
reads are modelled; everything else is ignored. Anything that does not validate
is treated as "nothing to do" rather than an error.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class MessengerChat(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Union[int, str]
    type: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None


class MessengerSender(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Union[int, str]
    is_bot: bool = False
    first_name: Optional[str] = None
    username: Optional[str] = None


class MessengerMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message_id: Optional[int] = None
    date: Optional[int] = None
    chat: Optional[MessengerChat] = None
    text: Optional[str] = None
    from_: Optional[MessengerSender] = Field(default=None, alias="from")


class MessengerUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    update_id: Optional[int] = None
    message: Optional[MessengerMessage] = None


class InboundMessage(BaseModel):
    """A text message the bridge should answer. Lives for one webhook call."""
    chat_id: str
    text: str
    received_at: datetime


def parse_update(payload: Any) -> Optional[InboundMessage]:
    """
    Extract the inbound text message from a webhook payload.

    Returns None when there is nothing to do: malformed payload, no message,
    no chat id, no text, or text that is empty after trimming.
    """
    if not isinstance(payload, dict):
        return None

    try:
        update = MessengerUpdate.model_validate(payload)
    except ValidationError:
        return None

    message = update.message
    if message is None or not message.text or message.chat is None:
        return None

    chat_id = str(message.chat.id).strip()
    if not chat_id:
        return None

    text = message.text.strip()
    if not text:
        return None

    received_at = (
        datetime.fromtimestamp(message.date, tz=timezone.utc)
        if message.date else datetime.now(timezone.utc)
    )
    return InboundMessage(chat_id=chat_id, text=text, received_at=received_at)
