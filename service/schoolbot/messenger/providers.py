"""
Messenger providers supported by the bridge.

Bale exposes a Telegram-compatible Bot API, so both providers share the same
payload shape and methods and differ only in base URL and the profile keys
that hold chat ids and bot tokens.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class MessengerProvider:
    name: str            # URL slug: "telegram" / "bale"
    label: str           # Human name used in logs and health checks
    api_base: str        # Token is appended directly: f"{api_base}{token}/sendMessage"
    chat_id_field: str   # users.profile key holding the user's chat id
    token_field: str     # principal's users.profile key holding the bot token
    bot_id_field: str
    max_message_length: int = 4096

    def method_url(self, token: str, method: str) -> str:
        return f"{self.api_base}{token}/{method}"

    @property
    def webhook_enabled_field(self) -> str:
        return f"{self.name}_webhook_enabled"

    @property
    def webhook_url_field(self) -> str:
        return f"{self.name}_webhook_url"


TELEGRAM = MessengerProvider(
    name="telegram",
    label="Telegram",
    api_base="https://api.telegram.org/bot",
    chat_id_field="telegram_chat_id",
    token_field="telegram_api_key",
    bot_id_field="telegram_bot_id",
)

BALE = MessengerProvider(
    name="bale",
    label="Bale",
    api_base="https://tapi.bale.ai/bot",
    chat_id_field="bale_chat_id",
    token_field="bale_api_key",
    bot_id_field="bale_bot_id",
)

PROVIDERS: dict[str, MessengerProvider] = {
    TELEGRAM.name: TELEGRAM,
    BALE.name: BALE,
}


def get_provider(name: str) -> MessengerProvider | None:
    return PROVIDERS.get((name or "").strip().lower())
