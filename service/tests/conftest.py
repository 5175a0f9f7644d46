"""
Shared fixtures: environment, and in-memory stand-ins for the directory,
bot API and assistant proxy.
"""

import os

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "jwt-secret")
os.environ.setdefault("MESSENGER_AUTH_SECRET", "messenger-secret")
os.environ.setdefault("CHUNK_DELAY_SECONDS", "0")

import pytest

from schoolbot.config import get_settings
from schoolbot.messenger.bot_api import BotApiResult
from schoolbot.messenger.directory import DirectoryLookupError, ResolvedUser
from schoolbot.messenger.providers import TELEGRAM
from schoolbot.services.assistant_proxy import text_stream


class FakeDirectory:
    def __init__(self):
        self.users = {}          # (provider name, chat id) -> ResolvedUser
        self.users_by_id = {}
        self.tokens = {}         # (provider name, school id) -> token
        self.principals = {}     # user id -> principal context row
        self.unknown = []
        self.profile_updates = []
        self.websites = []
        self.fail_lookups = False

    def add_user(self, provider, chat_id, user: ResolvedUser):
        self.users[(provider, chat_id)] = user
        self.users_by_id[user.id] = user

    async def identify_user_by_chat(self, provider, chat_id):
        if self.fail_lookups:
            raise DirectoryLookupError("store unavailable")
        return self.users.get((provider.name, chat_id))

    async def get_user_by_id(self, user_id):
        return self.users_by_id.get(user_id)

    async def get_bot_token_for_school(self, provider, school_id):
        return self.tokens.get((provider.name, school_id))

    async def log_unknown_interaction(self, provider, chat_id, message_text, reason):
        self.unknown.append({
            "provider": provider.name,
            "chat_id": chat_id,
            "message_text": message_text,
            "reason": reason,
        })

    async def get_principal_context(self, user_id):
        row = self.principals.get(user_id)
        return dict(row, profile=dict(row.get("profile") or {})) if row else None

    async def update_profile(self, user_id, updates):
        self.profile_updates.append((user_id, updates))
        row = self.principals.setdefault(user_id, {"profile": {}})
        row["profile"] = {**(row.get("profile") or {}), **updates}
        return row["profile"]

    async def set_school_website(self, school_id, website_url):
        self.websites.append((school_id, website_url))


class FakeBotAPI:
    def __init__(self, provider=TELEGRAM, fail_chunks=(), fail_actions=False):
        self.provider = provider
        self.messages = []
        self.actions = []
        self.fail_chunks = set(fail_chunks)
        self.fail_actions = fail_actions

    async def send_message(self, token, chat_id, text, parse_mode=None):
        index = len(self.messages)
        self.messages.append({"token": token, "chat_id": chat_id, "text": text})
        if index in self.fail_chunks:
            return BotApiResult(ok=False, error_code=429, description="Too Many Requests")
        return BotApiResult(ok=True, result={"message_id": index + 1})

    async def send_chat_action(self, token, chat_id, action="typing"):
        self.actions.append({"token": token, "chat_id": chat_id, "action": action})
        if self.fail_actions:
            return BotApiResult(ok=False, error_code=500, description="Internal server error")
        return BotApiResult(ok=True, result=True)


class FakeProxy:
    def __init__(self, reply="پاسخ دستیار"):
        self.reply = reply
        self.calls = []

    async def stream_reply(self, user, message_text, model_source="cloud"):
        self.calls.append({"user": user, "text": message_text, "model_source": model_source})
        return text_stream(self.reply)


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def bot_api():
    return FakeBotAPI()


@pytest.fixture
def proxy():
    return FakeProxy()


@pytest.fixture
def teacher():
    return ResolvedUser(
        id="u-teacher",
        name="مریم احمدی",
        role="teacher",
        school_id="school-1",
        profile={"telegram_chat_id": "1001"},
    )
