"""
Lookups against the school directory (users table).

Maps a messenger chat id to an application user, and a school to the bot
token configured on its principal's profile. All reads hit the store on every
call; nothing is cached between webhook requests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from starlette.concurrency import run_in_threadpool

from schoolbot.supabase_client import get_supabase_admin
from .logging_config import bot_logger as logger
from .providers import MessengerProvider

USER_COLUMNS = "id, name, role, school_id, profile"

VALID_ROLES = ("principal", "teacher", "student", "parent", "admin")
ROLE_ALIASES = {"manager": "principal"}


class DirectoryLookupError(Exception):
    """The backing store could not answer a lookup."""


@dataclass
class ResolvedUser:
    id: str
    name: str
    role: str
    school_id: Optional[str]
    profile: Dict[str, Any] = field(default_factory=dict)

    @property
    def model_source(self) -> str:
        """AI model preference: "local" only when explicitly chosen."""
        return "local" if self.profile.get("language_model") == "local" else "cloud"

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ResolvedUser":
        role = (row.get("role") or "").strip().lower()
        role = ROLE_ALIASES.get(role, role)
        if role not in VALID_ROLES:
            role = "student"
        profile = row.get("profile")
        school_id = row.get("school_id")
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            role=role,
            school_id=str(school_id) if school_id else None,
            profile=profile if isinstance(profile, dict) else {},
        )


class SchoolDirectory:
    """Read-mostly access to users and principal profiles."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_supabase_admin()
        return self._client

    async def _query(self, description: str, build):
        """Run a PostgREST query off the event loop; the supabase client is blocking."""
        try:
            result = await run_in_threadpool(lambda: build(self.client).execute())
            return result.data or []
        except Exception as e:
            logger.error(f"Directory lookup failed ({description}): {e}")
            raise DirectoryLookupError(f"Lookup failed: {description}") from e

    async def identify_user_by_chat(
        self, provider: MessengerProvider, chat_id: str
    ) -> Optional[ResolvedUser]:
        """Find the active user whose profile carries this provider chat id."""
        rows = await self._query(
            f"{provider.chat_id_field}={chat_id}",
            lambda db: db.table("users")
            .select(USER_COLUMNS)
            .eq(f"profile->>{provider.chat_id_field}", chat_id)
            .eq("is_active", True)
            .limit(1),
        )
        if not rows:
            return None
        return ResolvedUser.from_row(rows[0])

    async def get_user_by_id(self, user_id: str) -> Optional[ResolvedUser]:
        rows = await self._query(
            f"id={user_id}",
            lambda db: db.table("users")
            .select(USER_COLUMNS)
            .eq("id", user_id)
            .eq("is_active", True)
            .limit(1),
        )
        if not rows:
            return None
        return ResolvedUser.from_row(rows[0])

    async def get_bot_token_for_school(
        self, provider: MessengerProvider, school_id: str
    ) -> Optional[str]:
        """
        Bot token for the school, read from the principal's profile.

        Returns None when no principal or no token is configured.
        """
        rows = await self._query(
            f"{provider.token_field} for school {school_id}",
            lambda db: db.table("users")
            .select("profile")
            .eq("school_id", school_id)
            .eq("role", "principal")
            .eq("is_active", True)
            .limit(1),
        )
        if not rows:
            return None
        profile = rows[0].get("profile") or {}
        token = profile.get(provider.token_field) if isinstance(profile, dict) else None
        if not isinstance(token, str) or not token.strip():
            return None
        return token.strip()

    async def get_principal_context(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Principal row joined with the school's website URL."""
        rows = await self._query(
            f"principal {user_id}",
            lambda db: db.table("users")
            .select("id, role, school_id, profile, schools(website_url)")
            .eq("id", user_id)
            .eq("is_active", True)
            .limit(1),
        )
        if not rows:
            return None
        row = dict(rows[0])
        school = row.pop("schools", None) or {}
        row["website_url"] = school.get("website_url") if isinstance(school, dict) else None
        if not isinstance(row.get("profile"), dict):
            row["profile"] = {}
        return row

    async def update_profile(self, user_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge keys into a user's profile JSON and return the new profile.

        The merge runs in the database (profile || updates) so concurrent
        writers to other profile keys are not overwritten.
        """
        rows = await self._query(
            f"update profile of {user_id}",
            lambda db: db.rpc(
                "merge_user_profile",
                {"p_user_id": user_id, "p_updates": updates},
            ),
        )
        profile = rows[0] if isinstance(rows, list) and rows else rows
        return profile if isinstance(profile, dict) else {}

    async def set_school_website(self, school_id: str, website_url: str) -> None:
        await self._query(
            f"website of school {school_id}",
            lambda db: db.table("schools").update({
                "website_url": website_url,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }).eq("id", school_id),
        )

    async def log_unknown_interaction(
        self,
        provider: MessengerProvider,
        chat_id: str,
        message_text: str,
        reason: str,
    ) -> None:
        """Record a message the bridge will not answer. Fire-and-forget, never raises."""
        record = {
            "provider": provider.name,
            "chat_id": str(chat_id),
            "message_text": message_text[:100],
            "reason": reason,
        }
        logger.warning(f"Unknown {provider.label} interaction: {record}")
        try:
            await run_in_threadpool(
                lambda: self.client.table("messenger_unknown_interactions").insert(record).execute()
            )
        except Exception as e:
            logger.warning(f"Failed to store unknown interaction: {e}")


_directory: Optional[SchoolDirectory] = None


def get_directory() -> SchoolDirectory:
    """Get or create the shared directory."""
    global _directory
    if _directory is None:
        _directory = SchoolDirectory()
    return _directory
