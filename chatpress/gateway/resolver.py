"""Entity resolution: opaque channel/role/user/emoji ids -> display values.

Resolvers may raise (network, permissions) or return None (unknown id). The
renderers treat both the same way and fall back to a literal representation.
"""

from typing import Protocol


class EntityResolver(Protocol):
    async def resolve_channel(self, channel_id: str) -> str | None:
        """Channel name without the leading '#'."""
        ...

    async def resolve_role(self, role_id: str) -> str | None:
        """Role name without the leading '@'."""
        ...

    async def resolve_user(self, user_id: str) -> str | None:
        """Display name, falling back to username."""
        ...

    async def resolve_emoji(self, emoji_id: str) -> str | None:
        """Image URL for a custom emoji."""
        ...


class MappingResolver:
    """Resolver over in-memory mappings. Resolves nothing when left empty."""

    def __init__(
        self,
        channels: dict[str, str] | None = None,
        roles: dict[str, str] | None = None,
        users: dict[str, str] | None = None,
        emojis: dict[str, str] | None = None,
    ):
        self.channels = channels or {}
        self.roles = roles or {}
        self.users = users or {}
        self.emojis = emojis or {}

    async def resolve_channel(self, channel_id: str) -> str | None:
        return self.channels.get(channel_id)

    async def resolve_role(self, role_id: str) -> str | None:
        return self.roles.get(role_id)

    async def resolve_user(self, user_id: str) -> str | None:
        return self.users.get(user_id)

    async def resolve_emoji(self, emoji_id: str) -> str | None:
        return self.emojis.get(emoji_id)
