"""Per-channel document index: history fetch, tombstone filtering, rendering, search.

A ChannelIndex is immutable once built. Any change upstream produces a whole
new index (see registry.py); nothing here patches posts in place.
"""

import re
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Protocol, TypeVar

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from chatpress.gateway.config import Settings
from chatpress.gateway.constants import DEFAULT_PAGE_SIZE, HISTORY_PAGE_LIMIT
from chatpress.gateway.markdown.postprocess import extract_heading
from chatpress.gateway.markdown.renderer import HtmlRenderer, PlaintextRenderer, escape_html, render_post_html
from chatpress.gateway.markdown.transformer import parse_to_nodes
from chatpress.gateway.posts.cards import attachment_list, display_date, post_card
from chatpress.gateway.posts.models import RenderedPost, SourceMessage
from chatpress.gateway.resolver import EntityResolver

T = TypeVar("T")

_BYLINE_RE = re.compile(r'^\s*(?:<div class="newsPost">)?\s*<i>.*?</i>', re.S)
_WHITESPACE_RE = re.compile(r"\s+")


class HistorySource(Protocol):
    async def fetch_history_page(
        self,
        channel_id: str,
        before: str | None = None,
        limit: int = HISTORY_PAGE_LIMIT,
    ) -> list[SourceMessage]:
        """One page of messages older than `before`, newest first. Empty when exhausted."""
        ...


class ChannelIndex(BaseModel):
    """Rendered posts of one channel, newest first, plus their RSS descriptions."""

    model_config = ConfigDict(frozen=True)

    channel_id: str
    version: int
    built_at: datetime
    posts: tuple[RenderedPost, ...] = ()
    rss_descriptions: dict[str, str] = Field(default_factory=dict)

    _by_id: dict[str, RenderedPost] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context) -> None:
        self._by_id = {post.id: post for post in self.posts}

    def get_post(self, post_id: str) -> RenderedPost | None:
        return self._by_id.get(post_id)

    def __len__(self) -> int:
        return len(self.posts)


async def fetch_all_messages(
    source: HistorySource,
    channel_id: str,
    limit: int = HISTORY_PAGE_LIMIT,
) -> list[SourceMessage]:
    """Walk history backwards page by page until the source returns an empty page."""
    messages: list[SourceMessage] = []
    before: str | None = None
    while True:
        page = await source.fetch_history_page(channel_id, before=before, limit=limit)
        if not page:
            break
        # Pages arrive newest first; prepend so the accumulation stays oldest first
        messages[:0] = reversed(page)
        oldest = page[-1].id
        if oldest == before:
            logger.warning(f"History source for channel {channel_id} repeated page before={before}, stopping")
            break
        before = oldest
        logger.debug(f"Fetched {len(page)} messages from channel {channel_id}, next before={before}")
    return messages


def is_tombstone(message: SourceMessage, tombstone_bodies: Sequence[str]) -> bool:
    return message.content in tombstone_bodies


def _snowflake(post_id: str) -> int:
    return int(post_id) if post_id.isdecimal() else -1


def _sort_key(post: RenderedPost) -> tuple[datetime, int, str]:
    return post.created_at, _snowflake(post.id), post.id


def _cdata(html: str) -> str:
    return "<![CDATA[" + html.replace("]]>", "]]]]><![CDATA[>") + "]]>"


async def render_message(
    message: SourceMessage,
    html_renderer: HtmlRenderer,
    text_renderer: PlaintextRenderer,
    tz_name: str,
) -> RenderedPost:
    """Render one source message into its listing card, body, title and description."""
    nodes = parse_to_nodes(message.content)
    body_html = await render_post_html(nodes, html_renderer)

    date = display_date(message.created_at, tz_name)
    heading = extract_heading(message.content)
    title = (await text_renderer.render(parse_to_nodes(heading))).strip() if heading else ""

    return RenderedPost(
        id=message.id,
        created_at=message.created_at,
        last_modified=message.edited_at or message.created_at,
        author=message.author,
        html=post_card(message.id, message.author, message.created_at, body_html, message.attachment_count, tz_name),
        body_html=body_html,
        title=title or date,
        description=(await text_renderer.render(nodes)).strip(),
        attachments=tuple(attachment.proxy_url for attachment in message.attachments),
        attachment_count=message.attachment_count,
    )


async def build_index(
    channel_id: str,
    source: HistorySource,
    resolver: EntityResolver,
    settings: Settings,
    version: int = 1,
) -> ChannelIndex:
    """Fetch the whole channel history and render it into a fresh ChannelIndex.

    Any exception from the history source propagates; the caller keeps whatever
    index it had before.
    """
    messages = await fetch_all_messages(source, channel_id, settings.history_page_limit)

    renderer_options = {
        "timeout": settings.resolver_timeout_seconds,
        "concurrent": settings.concurrent_resolution,
    }
    html_renderer = HtmlRenderer(resolver, **renderer_options)
    text_renderer = PlaintextRenderer(resolver, **renderer_options)

    blacklist = set(settings.blacklisted_post_ids)
    posts: list[RenderedPost] = []
    skipped = 0
    for message in messages:
        if is_tombstone(message, settings.tombstone_bodies) or message.id in blacklist:
            skipped += 1
            continue
        posts.append(await render_message(message, html_renderer, text_renderer, settings.display_timezone))

    posts.sort(key=_sort_key, reverse=True)
    rss_descriptions = {post.id: _cdata(post.body_html + attachment_list(post.attachments)) for post in posts}

    logger.info(f"Built index v{version} for channel {channel_id}: {len(posts)} posts, {skipped} skipped")
    return ChannelIndex(
        channel_id=channel_id,
        version=version,
        built_at=datetime.now(timezone.utc),
        posts=tuple(posts),
        rss_descriptions=rss_descriptions,
    )


def _normalize(text: str) -> str:
    return _WHITESPACE_RE.sub("", text.lower())


def search(posts: Sequence[RenderedPost], query: str) -> list[RenderedPost]:
    """Case- and whitespace-insensitive substring search over the card html, byline excluded.

    The card is stored escaped, so the query is escaped the same way before matching.
    Everything after the byline is searched, tags and the fixed "Link to post" text
    included, so a query like "href" matches every post. Results keep index order.
    """
    needle = _normalize(escape_html(query))
    return [post for post in posts if needle in _normalize(_BYLINE_RE.sub("", post.html, count=1))]


def paginate(items: Sequence[T], page: int | None, page_size: int = DEFAULT_PAGE_SIZE) -> list[T]:
    """1-indexed slice. Missing or non-positive pages mean page 1; past the end is empty."""
    if page is None or page <= 0:
        page = 1
    start = (page - 1) * page_size
    return list(items[start : start + page_size])


def page_count(total: int, page_size: int = DEFAULT_PAGE_SIZE) -> int:
    return max(1, -(-total // page_size))
