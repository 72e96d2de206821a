import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from chatpress.gateway.config import Settings
from chatpress.gateway.exceptions import ResolutionError
from chatpress.gateway.posts.models import Attachment, SourceMessage
from chatpress.gateway.resolver import MappingResolver

CHANNEL_ID = "1217494766397296771"
EPOCH = datetime(2024, 3, 14, 12, 0, tzinfo=timezone.utc)


def make_message(
    message_id: int | str,
    content: str,
    *,
    author: str = "Newsbot",
    minutes: int | None = None,
    attachments: int = 0,
    edited_minutes: int | None = None,
) -> SourceMessage:
    """Message created `minutes` after EPOCH (defaults to its id)."""
    offset = int(message_id) if minutes is None else minutes
    return SourceMessage(
        id=str(message_id),
        channel_id=CHANNEL_ID,
        content=content,
        author=author,
        created_at=EPOCH + timedelta(minutes=offset),
        edited_at=EPOCH + timedelta(minutes=edited_minutes) if edited_minutes is not None else None,
        attachments=[
            Attachment(
                id=f"{message_id}{i}",
                filename=f"image{i}.png",
                url=f"https://cdn.example/{message_id}/{i}.png",
                proxy_url=f"https://media.example/{message_id}/{i}.png",
                content_type="image/png",
            )
            for i in range(attachments)
        ],
    )


class FakeHistorySource:
    """In-memory channel history, paged newest first like the platform API."""

    def __init__(self, messages: list[SourceMessage] | None = None):
        self.messages = list(messages or [])
        self.calls: list[str | None] = []
        self.fail = False
        self.delay = 0.0

    async def fetch_history_page(self, channel_id: str, before: str | None = None, limit: int = 100):
        self.calls.append(before)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("history unavailable")
        ordered = sorted(
            (m for m in self.messages if m.channel_id == channel_id),
            key=lambda m: int(m.id),
            reverse=True,
        )
        if before is not None:
            ordered = [m for m in ordered if int(m.id) < int(before)]
        return ordered[:limit]


class FailingResolver:
    """Every lookup raises, as a resolver does when the platform is down."""

    async def resolve_channel(self, channel_id: str) -> str | None:
        raise ResolutionError("channel", channel_id, "boom")

    async def resolve_role(self, role_id: str) -> str | None:
        raise ResolutionError("role", role_id, "boom")

    async def resolve_user(self, user_id: str) -> str | None:
        raise ResolutionError("user", user_id, "boom")

    async def resolve_emoji(self, emoji_id: str) -> str | None:
        raise ResolutionError("emoji", emoji_id, "boom")


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        channel_id=CHANNEL_ID,
        guild_id="1000",
        base_url="https://news.example",
        display_timezone="UTC",
        refresh_interval_seconds=0,
        resolver_timeout_seconds=1.0,
        log_dir=tmp_path / "logs",
    )


@pytest.fixture
def resolver() -> MappingResolver:
    return MappingResolver(
        channels={"10": "general"},
        roles={"20": "moderators"},
        users={"30": "alice"},
        emojis={"40": "https://emoji.example/40.png"},
    )


@pytest.fixture
def failing_resolver() -> FailingResolver:
    return FailingResolver()


@pytest.fixture
def history() -> FakeHistorySource:
    return FakeHistorySource(
        [
            make_message(1, "# First story\nSomething happened."),
            make_message(2, "BREAKING: the bridge is open"),
            make_message(3, "[deleted]"),
            make_message(4, "Photos from <#10>", attachments=2),
        ]
    )
