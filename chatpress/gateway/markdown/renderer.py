"""Render chat-markdown AST nodes to HTML fragments and to plain text.

Both renderers walk the tree depth-first, left to right, and await the entity
resolver only for reference and emoji nodes. A failed or missing lookup never
aborts a render; the node degrades to a literal representation instead.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone

from loguru import logger

from chatpress.gateway.constants import EMOJI_CDN_URL, SEPARATOR
from chatpress.gateway.markdown.models import (
    BlockQuoteNode,
    BroadcastNode,
    CodeBlockNode,
    EmojiNode,
    EmoticonNode,
    InlineCodeNode,
    LinkNode,
    Node,
    ReferenceNode,
    StyleNode,
    TextNode,
    TimestampNode,
    UnknownNode,
)
from chatpress.gateway.markdown.postprocess import minify_html, promote_headings, strip_separators
from chatpress.gateway.markdown.timestamps import format_timestamp, iso_instant, to_datetime
from chatpress.gateway.resolver import EntityResolver, MappingResolver

_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#039;"),
)

_STYLE_TAGS = {
    "em": "i",
    "strong": "b",
    "underline": "u",
    "strikethrough": "s",
}

_REFERENCE_PREFIXES = {"channel": "#", "role": "@", "user": "@"}
_RAW_REFERENCE_PREFIXES = {"channel": "#", "role": "@&", "user": "@"}
_ANGLE_BRACKETS = str.maketrans("", "", "<>")


def escape_html(value: str) -> str:
    """Escape `& < > " '` for interpolation into HTML text or attributes.

    Apply once, to values that did not come out of HtmlRenderer.
    """
    for char, entity in _ESCAPES:
        value = value.replace(char, entity)
    return value


def emoji_cdn_url(emoji_id: str, animated: bool = False) -> str:
    return EMOJI_CDN_URL.format(emoji_id=emoji_id, ext="gif" if animated else "png")


class _TreeRenderer(ABC):
    """Shared traversal: sequence handling, resolver calls, kind dispatch."""

    joiner: str

    def __init__(
        self,
        resolver: EntityResolver | None = None,
        *,
        timeout: float | None = None,
        concurrent: bool = False,
        now: Callable[[], datetime] | None = None,
    ):
        self.resolver = resolver or MappingResolver()
        self.timeout = timeout
        self.concurrent = concurrent
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._handlers: dict[str, Callable[..., Awaitable[str]]] = {}

    async def render(self, nodes: Node | Sequence[Node] | None) -> str:
        """Render a node or a sequence of sibling nodes."""
        if nodes is None:
            return ""
        if isinstance(nodes, str):
            # Terminal content handed in where children were expected
            return await self._render_node(TextNode(content=nodes))
        if isinstance(nodes, Sequence):
            return self.joiner.join(await self._render_all(nodes))
        return await self._render_node(nodes)

    async def _render_all(self, nodes: Sequence[Node]) -> list[str]:
        if self.concurrent:
            # gather keeps input order, so document structure is unaffected
            return list(await asyncio.gather(*(self._render_node(node) for node in nodes)))
        return [await self._render_node(node) for node in nodes]

    async def _render_node(self, node: Node) -> str:
        handler = self._handlers.get(node.kind)
        if handler is None or isinstance(node, UnknownNode):
            return await self._render_unknown(node)
        return await handler(node)

    @abstractmethod
    async def _render_unknown(self, node: Node) -> str:
        """Fallback for kinds without a handler."""

    async def _lookup(self, kind: str, ref_id: str) -> str | None:
        """Resolve a reference, mapping every failure to None."""
        lookups = {
            "channel": self.resolver.resolve_channel,
            "role": self.resolver.resolve_role,
            "user": self.resolver.resolve_user,
            "emoji": self.resolver.resolve_emoji,
        }
        try:
            if self.timeout is None:
                return await lookups[kind](ref_id)
            return await asyncio.wait_for(lookups[kind](ref_id), self.timeout)
        except Exception as e:
            logger.debug(f"Could not resolve {kind} {ref_id}: {e!r}")
            return None


class HtmlRenderer(_TreeRenderer):
    """AST -> HTML fragment. Siblings are joined by SEPARATOR for promote_headings."""

    joiner = SEPARATOR

    def __init__(self, resolver: EntityResolver | None = None, **kwargs):
        super().__init__(resolver, **kwargs)
        self._handlers = {
            "text": self._render_text,
            "link": self._render_link,
            "url": self._render_link,
            "autolink": self._render_link,
            "blockQuote": self._render_blockquote,
            "br": self._render_break,
            "newline": self._render_break,
            "channel": self._render_reference,
            "role": self._render_reference,
            "user": self._render_reference,
            "here": self._render_broadcast,
            "everyone": self._render_broadcast,
            "codeBlock": self._render_code_block,
            "inlineCode": self._render_inline_code,
            "em": self._render_style,
            "strong": self._render_style,
            "underline": self._render_style,
            "strikethrough": self._render_style,
            "spoiler": self._render_spoiler,
            "emoticon": self._render_emoticon,
            "emoji": self._render_emoji,
            "twemoji": self._render_emoji,
            "timestamp": self._render_timestamp,
        }

    async def _render_text(self, node: TextNode) -> str:
        return escape_html(strip_separators(node.content))

    async def _render_link(self, node: LinkNode) -> str:
        inner = await self.render(node.content)
        href = escape_html(strip_separators(node.target))
        if node.kind == "link":
            return f'<a href="{href}">{inner}</a>'
        return f'<a href="{href}" target="_blank" rel="noreferrer">{inner}</a>'

    async def _render_blockquote(self, node: BlockQuoteNode) -> str:
        return f"<blockquote>{await self.render(node.content)}</blockquote>"

    async def _render_break(self, node: Node) -> str:
        return "<br />"

    async def _render_reference(self, node: ReferenceNode) -> str:
        name = await self._lookup(node.kind, node.id)
        if name is None:
            raw = f"<{_RAW_REFERENCE_PREFIXES[node.kind]}{node.id}>"
            return escape_html(strip_separators(raw))
        label = escape_html(strip_separators(_REFERENCE_PREFIXES[node.kind] + name))
        return f'<span class="mention">{label}</span>'

    async def _render_broadcast(self, node: BroadcastNode) -> str:
        return f'<span class="mention">@{node.kind}</span>'

    async def _render_code_block(self, node: CodeBlockNode) -> str:
        code = escape_html(strip_separators(node.content))
        if not node.lang:
            return f"<pre><code>{code}</code></pre>"
        lang = escape_html(strip_separators(node.lang))
        return f'<pre><code class="language-{lang}" data-lang="{lang}">{code}</code></pre>'

    async def _render_inline_code(self, node: InlineCodeNode) -> str:
        return f"<code>{escape_html(strip_separators(node.content))}</code>"

    async def _render_style(self, node: StyleNode) -> str:
        tag = _STYLE_TAGS[node.kind]
        return f"<{tag}>{await self.render(node.content)}</{tag}>"

    async def _render_spoiler(self, node: StyleNode) -> str:
        return f'<span class="spoiler">{await self.render(node.content)}</span>'

    async def _render_emoticon(self, node: EmoticonNode) -> str:
        if isinstance(node.content, str):
            # Verbatim text; a literal "#" must not read as a heading marker
            return "&#35;".join(escape_html(part) for part in strip_separators(node.content).split("#"))
        return await self.render(node.content)

    async def _render_emoji(self, node: EmojiNode) -> str:
        name = escape_html(strip_separators(node.name))
        if not node.id:
            return name
        src = await self._lookup("emoji", node.id) or emoji_cdn_url(node.id, node.animated)
        return f'<img class="emoji" src="{escape_html(src)}" alt=":{name}:" title=":{name}:">'

    async def _render_timestamp(self, node: TimestampNode) -> str:
        dt = to_datetime(node.timestamp)
        text = format_timestamp(dt, node.format, now=self._now()) if dt else None
        if dt is None or text is None:
            return escape_html(strip_separators(f"{node.timestamp} ({node.format})"))
        fmt = escape_html(strip_separators(node.format))
        return f'<time datetime="{iso_instant(dt)}" data-format="{fmt}">{text}</time>'

    async def _render_unknown(self, node: Node) -> str:
        content = getattr(node, "content", "")
        prefix = escape_html(strip_separators(f"{node.kind}: "))
        if isinstance(content, str):
            return prefix + escape_html(strip_separators(content))
        return prefix + await self.render(content)


class PlaintextRenderer(_TreeRenderer):
    """AST -> tag-free text for titles, descriptions and feed metadata.

    Angle brackets are dropped so the output can never form a tag. Nothing
    else is escaped; callers embedding it in HTML must use escape_html.
    """

    joiner = " "

    def __init__(self, resolver: EntityResolver | None = None, **kwargs):
        super().__init__(resolver, **kwargs)
        self._handlers = {
            "text": self._render_content,
            "link": self._render_content,
            "url": self._render_content,
            "autolink": self._render_content,
            "blockQuote": self._render_content,
            "codeBlock": self._render_content,
            "inlineCode": self._render_content,
            "em": self._render_content,
            "strong": self._render_content,
            "underline": self._render_content,
            "strikethrough": self._render_content,
            "spoiler": self._render_content,
            "emoticon": self._render_content,
            "br": self._render_break,
            "newline": self._render_break,
            "channel": self._render_reference,
            "role": self._render_reference,
            "user": self._render_reference,
            "here": self._render_broadcast,
            "everyone": self._render_broadcast,
            "emoji": self._render_emoji,
            "twemoji": self._render_emoji,
            "timestamp": self._render_timestamp,
        }

    async def render(self, nodes: Node | Sequence[Node] | None) -> str:
        return strip_separators(await super().render(nodes)).translate(_ANGLE_BRACKETS)

    async def _render_content(self, node: Node) -> str:
        content = getattr(node, "content", "")
        if isinstance(content, str):
            return content
        return await self.render(content)

    async def _render_break(self, node: Node) -> str:
        return "\n"

    async def _render_reference(self, node: ReferenceNode) -> str:
        prefix = _REFERENCE_PREFIXES[node.kind]
        name = await self._lookup(node.kind, node.id)
        return prefix + (name if name is not None else node.id)

    async def _render_broadcast(self, node: BroadcastNode) -> str:
        return f"@{node.kind}"

    async def _render_emoji(self, node: EmojiNode) -> str:
        # Custom emoji are images; no textual stand-in
        return "" if node.id else node.name

    async def _render_timestamp(self, node: TimestampNode) -> str:
        dt = to_datetime(node.timestamp)
        text = format_timestamp(dt, node.format, now=self._now()) if dt else None
        return text if text is not None else f"{node.timestamp} ({node.format})"

    async def _render_unknown(self, node: Node) -> str:
        return f"{node.kind}: {await self._render_content(node)}"


async def render_post_html(nodes: Sequence[Node], renderer: HtmlRenderer) -> str:
    """Full pipeline for a message body: render, promote headings, minify."""
    return minify_html(promote_headings(await renderer.render(nodes)))
