"""Discord REST adapter: channel history source and entity resolver in one client."""

from typing import Any

import httpx
from loguru import logger

from chatpress.gateway.config import Settings
from chatpress.gateway.constants import HISTORY_PAGE_LIMIT
from chatpress.gateway.exceptions import ResolutionError
from chatpress.gateway.markdown.renderer import emoji_cdn_url
from chatpress.gateway.posts.models import Attachment, SourceMessage


def _author_name(message: dict[str, Any]) -> str:
    member = message.get("member") or {}
    author = message.get("author") or {}
    for value in (member.get("nick"), author.get("global_name"), author.get("username")):
        if isinstance(value, str) and value.strip():
            return value.strip()
    return "unknown"


def _to_source_message(channel_id: str, data: dict[str, Any]) -> SourceMessage:
    return SourceMessage(
        id=str(data["id"]),
        channel_id=str(data.get("channel_id") or channel_id),
        content=data.get("content") or "",
        author=_author_name(data),
        created_at=data["timestamp"],
        edited_at=data.get("edited_timestamp"),
        attachments=[
            Attachment(
                id=str(a["id"]),
                filename=a.get("filename", ""),
                url=a["url"],
                proxy_url=a.get("proxy_url") or a["url"],
                content_type=a.get("content_type"),
            )
            for a in data.get("attachments") or []
        ],
    )


class DiscordClient:
    """Bot-token client for the handful of endpoints the site needs.

    Lookups cache per id for the lifetime of the client, misses included.
    404 on a lookup means "unknown" and resolves to None; other HTTP failures
    raise ResolutionError. History fetches let httpx errors propagate.
    """

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        headers = {"User-Agent": "chatpress/0.1.0"}
        if settings.discord_token:
            headers["Authorization"] = f"Bot {settings.discord_token}"
        self.guild_id = settings.guild_id
        self._client = httpx.AsyncClient(
            base_url=settings.discord_api_base,
            headers=headers,
            timeout=settings.request_timeout_seconds,
            transport=transport,
        )
        self._channels: dict[str, str | None] = {}
        self._users: dict[str, str | None] = {}
        self._emojis: dict[str, str | None] = {}
        self._roles: dict[str, str] | None = None

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._client.get(path, params=params)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    async def _lookup(self, kind: str, ref_id: str, path: str) -> Any:
        try:
            return await self._get(path)
        except httpx.HTTPError as e:
            raise ResolutionError(kind, ref_id, str(e)) from e

    # === HISTORY ===

    async def fetch_history_page(
        self,
        channel_id: str,
        before: str | None = None,
        limit: int = HISTORY_PAGE_LIMIT,
    ) -> list[SourceMessage]:
        params: dict[str, Any] = {"limit": limit}
        if before:
            params["before"] = before
        response = await self._client.get(f"/channels/{channel_id}/messages", params=params)
        response.raise_for_status()
        messages = [_to_source_message(channel_id, data) for data in response.json()]
        logger.debug(f"GET history channel={channel_id} before={before}: {len(messages)} messages")
        return messages

    # === RESOLVER ===

    async def resolve_channel(self, channel_id: str) -> str | None:
        if channel_id not in self._channels:
            data = await self._lookup("channel", channel_id, f"/channels/{channel_id}")
            self._channels[channel_id] = data.get("name") if data else None
        return self._channels[channel_id]

    async def resolve_role(self, role_id: str) -> str | None:
        if self.guild_id is None:
            return None
        if self._roles is None:
            data = await self._lookup("role", role_id, f"/guilds/{self.guild_id}/roles")
            self._roles = {str(role["id"]): role["name"] for role in data or []}
        return self._roles.get(role_id)

    async def resolve_user(self, user_id: str) -> str | None:
        if user_id not in self._users:
            data = await self._lookup("user", user_id, f"/users/{user_id}")
            self._users[user_id] = (data.get("global_name") or data.get("username")) if data else None
        return self._users[user_id]

    async def resolve_emoji(self, emoji_id: str) -> str | None:
        if self.guild_id is None:
            return None
        if emoji_id not in self._emojis:
            data = await self._lookup("emoji", emoji_id, f"/guilds/{self.guild_id}/emojis/{emoji_id}")
            self._emojis[emoji_id] = emoji_cdn_url(emoji_id, bool(data.get("animated"))) if data else None
        return self._emojis[emoji_id]
