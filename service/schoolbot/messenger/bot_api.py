"""
Bot API client for sending messages back to Telegram / Bale.

Calls never raise: transport failures come back as an envelope with ok=False
so callers only inspect the result for logging.
"""

from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict

from .logging_config import bot_logger as logger
from .providers import MessengerProvider


class BotApiResult(BaseModel):
    """Standard Bot API response envelope."""
    model_config = ConfigDict(extra="ignore")

    ok: bool
    result: Optional[Any] = None
    error_code: Optional[int] = None
    description: Optional[str] = None


class MessengerBotAPI:
    """
    Thin wrapper over one provider's Bot API.

    The token is passed per call because every school runs its own bot.
    """

    def __init__(self, provider: MessengerProvider, client: Optional[httpx.AsyncClient] = None):
        self.provider = provider
        self.client = client or httpx.AsyncClient(timeout=30.0)

    async def _post(self, token: str, method: str, payload: dict) -> BotApiResult:
        url = self.provider.method_url(token, method)
        try:
            response = await self.client.post(url, json=payload)
            try:
                result = BotApiResult.model_validate(response.json())
            except ValueError:
                result = BotApiResult(
                    ok=False,
                    error_code=response.status_code,
                    description=response.text[:300],
                )
            if response.is_error:
                logger.error(f"{self.provider.label} API error ({response.status_code}) on {method}: {result.description}")
            return result
        except httpx.HTTPError as e:
            logger.error(f"{self.provider.label} {method} request failed: {e}")
            return BotApiResult(ok=False, error_code=500, description="Internal server error")

    async def send_message(
        self,
        token: str,
        chat_id: str,
        text: str,
        parse_mode: Optional[str] = None
    ) -> BotApiResult:
        """
        Send a text message.

        Args:
            token: School's bot token
            chat_id: Target chat ID
            text: Message text (at most the provider's message limit)
            parse_mode: Optional parse mode (Markdown, HTML)
        """
        payload = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        return await self._post(token, "sendMessage", payload)

    async def send_chat_action(self, token: str, chat_id: str, action: str = "typing") -> BotApiResult:
        """Send chat action (typing indicator)."""
        return await self._post(token, "sendChatAction", {"chat_id": chat_id, "action": action})

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()


_bot_apis: dict[str, MessengerBotAPI] = {}


def get_bot_api(provider: MessengerProvider) -> MessengerBotAPI:
    """Get or create the Bot API client for a provider."""
    if provider.name not in _bot_apis:
        _bot_apis[provider.name] = MessengerBotAPI(provider)
    return _bot_apis[provider.name]


async def close_bot_apis() -> None:
    for api in list(_bot_apis.values()):
        await api.close()
    _bot_apis.clear()
