"""
Messenger bridge for Telegram and Bale school bots.

ARCHITECTURE: Thin routing layer - the assistant logic lives behind the
assistant endpoint, reached through the assistant proxy.
- Receives webhook updates (global or per-school)
- Identifies the user by the chat id stored in their profile
- Resolves the school's bot token from the principal profile
- Forwards the message to the assistant and sends the reply back
"""

from .providers import TELEGRAM, BALE, get_provider
from .formatting import format_for_messenger, split_long_message
from .updates import InboundMessage, parse_update

__all__ = [
    "TELEGRAM",
    "BALE",
    "get_provider",
    "format_for_messenger",
    "split_long_message",
    "InboundMessage",
    "parse_update",
]
