from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


@dataclass(frozen=True)
class AppUrls:
    """Base URLs the messenger bridge may use to reach this application."""
    internal_app_url: Optional[str]
    public_app_url: Optional[str]
    port: int


class Settings(BaseSettings):
    # Supabase (PostgreSQL via PostgREST)
    supabase_url: str
    supabase_service_role_key: str
    supabase_jwt_secret: str

    # OpenAI (cloud) and OpenAI-compatible local server
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    local_ai_base_url: str = "http://127.0.0.1:8080/v1"
    local_ai_model: str = "openai/gpt-oss-20b"
    local_ai_api_key: str = "local-ai"

    # Where the assistant endpoint can be reached from inside the app
    internal_app_url: str = ""
    public_app_url: str = ""
    port: int = 8000
    assistant_timeout_seconds: float = 60.0

    # Messenger bridge
    messenger_auth_secret: str = ""
    webhook_secret: str = ""  # Optional: X-Telegram-Bot-Api-Secret-Token check
    max_message_length: int = 4000  # Provider hard limit is 4096
    chunk_delay_seconds: float = 0.1

    # Environment
    environment: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    def app_urls(self) -> AppUrls:
        return AppUrls(
            internal_app_url=self.internal_app_url or None,
            public_app_url=self.public_app_url or None,
            port=self.port,
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
