"""
Proxy from the messenger bridge to the AI-assistant endpoint.

The assistant runs inside this application, but depending on the deployment it
is reachable through a different address (explicit internal URL, loopback, or
the public domain). Candidates are tried in order:

- 2xx with a body: the response body is returned as the reply stream
- 4xx: stop, the request itself is wrong; the parsed error becomes the reply
- network error or 5xx: try the next candidate

When every candidate fails the reply is a localized failure message. The
proxy never raises to its caller.
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Optional

import httpx

from schoolbot.config import AppUrls, get_settings
from schoolbot.messenger.directory import ResolvedUser
from schoolbot.messenger.logging_config import assistant_logger as logger

ASSISTANT_PATH = "/api/assistant/chat"
DEFAULT_FAILURE_MESSAGE = "خطا در پردازش پیام. لطفاً بعداً تلاش کنید."


class ProxyOutcome(str, Enum):
    SUCCESS = "success"
    CLIENT_ERROR = "client_error"
    EXHAUSTED = "exhausted"


@dataclass
class ProxyResult:
    outcome: ProxyOutcome
    stream: AsyncIterator[bytes]
    url: Optional[str] = None
    status_code: Optional[int] = None


def normalize_base_url(raw_url: Optional[str]) -> Optional[str]:
    """Trim, default to https:// and drop trailing slashes. Empty input gives None."""
    trimmed = (raw_url or "").strip()
    if not trimmed:
        return None
    if not re.match(r"^https?://", trimmed, re.IGNORECASE):
        trimmed = f"https://{trimmed}"
    return trimmed.rstrip("/")


def candidate_base_urls(urls: AppUrls) -> list[str]:
    """Internal URL, loopback addresses, then the public URL, deduplicated."""
    candidates = [
        urls.internal_app_url,
        f"http://127.0.0.1:{urls.port}",
        f"http://localhost:{urls.port}",
        urls.public_app_url,
    ]
    ordered = []
    for candidate in candidates:
        normalized = normalize_base_url(candidate)
        if normalized and normalized not in ordered:
            ordered.append(normalized)
    return ordered


def parse_error_message(body: str) -> Optional[str]:
    """Extract a non-empty {"error": "..."} message from a response body."""
    try:
        parsed = json.loads(body)
    except ValueError:
        return None
    if isinstance(parsed, dict):
        error = parsed.get("error")
        if isinstance(error, str) and error.strip():
            return error.strip()
    return None


async def text_stream(message: str) -> AsyncIterator[bytes]:
    """One-shot stream carrying a single message."""
    yield message.encode("utf-8")


async def _iter_response(response: httpx.Response) -> AsyncIterator[bytes]:
    try:
        async for chunk in response.aiter_bytes():
            yield chunk
    finally:
        await response.aclose()


class AssistantProxyClient:
    """Forwards a messenger user's message to the AI-assistant endpoint."""

    def __init__(
        self,
        app_urls: AppUrls,
        assistant_path: str = ASSISTANT_PATH,
        auth_secret: str = "",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        self.base_urls = candidate_base_urls(app_urls)
        self.assistant_path = "/" + assistant_path.lstrip("/")
        self.auth_secret = auth_secret
        self.client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self, user: ResolvedUser, model_source: str) -> dict:
        return {
            "Content-Type": "application/json",
            "x-messenger-user-id": user.id,
            "x-messenger-auth": self.auth_secret,
            "x-model-source": model_source,
        }

    async def open_stream(
        self,
        user: ResolvedUser,
        message_text: str,
        model_source: str = "cloud",
    ) -> ProxyResult:
        try:
            return await self._failover(user, message_text, model_source)
        except Exception as e:
            logger.error(f"Failed to call assistant API: {e}", exc_info=True)
            return ProxyResult(ProxyOutcome.EXHAUSTED, text_stream(DEFAULT_FAILURE_MESSAGE))

    async def _failover(self, user: ResolvedUser, message_text: str, model_source: str) -> ProxyResult:
        payload = {"messages": [{"role": "user", "content": message_text}]}
        headers = self._headers(user, model_source)
        last_error = DEFAULT_FAILURE_MESSAGE

        for base_url in self.base_urls:
            url = f"{base_url}{self.assistant_path}"
            request = self.client.build_request("POST", url, json=payload, headers=headers)

            try:
                response = await self.client.send(request, stream=True)
            except httpx.HTTPError as e:
                logger.warning(f"Assistant proxy request to {url} failed: {e!r}")
                continue

            if response.is_success and response.status_code != 204:
                logger.info(f"Assistant proxy streaming from {url}")
                return ProxyResult(ProxyOutcome.SUCCESS, _iter_response(response), url, response.status_code)

            try:
                await response.aread()
                error_text = response.text
            except httpx.HTTPError:
                error_text = ""
            finally:
                await response.aclose()

            parsed_error = parse_error_message(error_text)
            if parsed_error:
                last_error = parsed_error

            logger.error(
                f"Assistant proxy non-OK response: url={url} status={response.status_code} "
                f"body={error_text[:300]!r}"
            )

            if 400 <= response.status_code < 500:
                return ProxyResult(ProxyOutcome.CLIENT_ERROR, text_stream(last_error), url, response.status_code)

        logger.error(f"Assistant proxy exhausted {len(self.base_urls)} candidate URLs")
        return ProxyResult(ProxyOutcome.EXHAUSTED, text_stream(last_error))

    async def stream_reply(
        self,
        user: ResolvedUser,
        message_text: str,
        model_source: str = "cloud",
    ) -> AsyncIterator[bytes]:
        result = await self.open_stream(user, message_text, model_source)
        return result.stream

    async def close(self):
        await self.client.aclose()


_proxy_client: Optional[AssistantProxyClient] = None


def get_assistant_proxy() -> AssistantProxyClient:
    """Get or create the assistant proxy singleton."""
    global _proxy_client
    if _proxy_client is None:
        settings = get_settings()
        _proxy_client = AssistantProxyClient(
            app_urls=settings.app_urls(),
            auth_secret=settings.messenger_auth_secret,
            timeout=settings.assistant_timeout_seconds,
        )
    return _proxy_client


async def close_assistant_proxy() -> None:
    global _proxy_client
    if _proxy_client is not None:
        await _proxy_client.close()
        _proxy_client = None
