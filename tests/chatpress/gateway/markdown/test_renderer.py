"""Tests for the HTML renderer."""

import asyncio
from datetime import datetime, timezone

import pytest

from chatpress.gateway.constants import SEPARATOR
from chatpress.gateway.markdown.models import (
    BlockQuoteNode,
    BreakNode,
    BroadcastNode,
    CodeBlockNode,
    EmojiNode,
    EmoticonNode,
    InlineCodeNode,
    LinkNode,
    ReferenceNode,
    StyleNode,
    TextNode,
    TimestampNode,
    nodes_from_json,
)
from chatpress.gateway.markdown.renderer import HtmlRenderer, _TreeRenderer, escape_html, render_post_html
from chatpress.gateway.resolver import MappingResolver
from tests.chatpress.gateway.conftest import FailingResolver

# 2021-04-20T21:20:30Z, a Tuesday
TS = 1618953630


async def render(nodes, resolver=None, **kwargs) -> str:
    html = await HtmlRenderer(resolver, **kwargs).render(nodes)
    return html.replace(SEPARATOR, "")


# === ESCAPING ===


@pytest.mark.asyncio
async def test_ampersand_escaped_exactly_once():
    html = await render(TextNode(content="Tom & Jerry"))
    assert html == "Tom &amp; Jerry"
    assert "&amp;amp;" not in html


@pytest.mark.asyncio
async def test_text_escapes_markup():
    html = await render(TextNode(content='<script>alert("x")</script>'))
    assert html == "&lt;script&gt;alert(&quot;x&quot;)&lt;/script&gt;"


@pytest.mark.asyncio
async def test_nested_text_escaped_once():
    node = StyleNode(kind="strong", content=[StyleNode(kind="em", content=[TextNode(content="a & b")])])
    assert await render(node) == "<b><i>a &amp; b</i></b>"


def test_escape_html_is_not_idempotent():
    assert escape_html("&") == "&amp;"
    assert escape_html(escape_html("&")) == "&amp;amp;"
    assert escape_html("'\"<>") == "&#039;&quot;&lt;&gt;"


@pytest.mark.asyncio
async def test_separator_in_user_text_is_removed():
    html = await HtmlRenderer().render(TextNode(content=f"a{SEPARATOR}b"))
    assert html == "ab"


# === STRUCTURE ===


def test_base_renderer_is_abstract():
    with pytest.raises(TypeError):
        _TreeRenderer()



@pytest.mark.asyncio
async def test_sequence_joined_with_separator():
    html = await HtmlRenderer().render([TextNode(content="a"), BreakNode(), TextNode(content="b")])
    assert html == f"a{SEPARATOR}<br />{SEPARATOR}b"


@pytest.mark.asyncio
async def test_none_renders_empty():
    assert await HtmlRenderer().render(None) == ""


@pytest.mark.asyncio
async def test_styles():
    nodes = [
        StyleNode(kind="em", content=[TextNode(content="i")]),
        StyleNode(kind="strong", content=[TextNode(content="b")]),
        StyleNode(kind="underline", content=[TextNode(content="u")]),
        StyleNode(kind="strikethrough", content=[TextNode(content="s")]),
        StyleNode(kind="spoiler", content=[TextNode(content="x")]),
    ]
    assert await render(nodes) == '<i>i</i><b>b</b><u>u</u><s>s</s><span class="spoiler">x</span>'


@pytest.mark.asyncio
async def test_links():
    masked = LinkNode(kind="link", target="https://example.com/?a=1&b=2", content=[TextNode(content="here")])
    bare = LinkNode(kind="url", target="https://example.com", content=[TextNode(content="https://example.com")])
    assert await render(masked) == '<a href="https://example.com/?a=1&amp;b=2">here</a>'
    assert await render(bare) == (
        '<a href="https://example.com" target="_blank" rel="noreferrer">https://example.com</a>'
    )


@pytest.mark.asyncio
async def test_link_target_cannot_break_out_of_attribute():
    node = LinkNode(kind="autolink", target='https://x.example/"onmouseover="x', content=[TextNode(content="x")])
    html = await render(node)
    assert '"onmouseover' not in html
    assert "&quot;onmouseover=&quot;x" in html


@pytest.mark.asyncio
async def test_blockquote_and_breaks():
    node = BlockQuoteNode(content=[TextNode(content="a"), BreakNode(kind="newline"), TextNode(content="b")])
    assert await render(node) == "<blockquote>a<br />b</blockquote>"


@pytest.mark.asyncio
async def test_code_block_keeps_language_and_escapes_content():
    node = CodeBlockNode(lang="py", content="if a < b:\n    pass")
    assert await render(node) == (
        '<pre><code class="language-py" data-lang="py">if a &lt; b:\n    pass</code></pre>'
    )
    assert await render(CodeBlockNode(content="x")) == "<pre><code>x</code></pre>"


@pytest.mark.asyncio
async def test_inline_code():
    assert await render(InlineCodeNode(content="a & b")) == "<code>a &amp; b</code>"


@pytest.mark.asyncio
async def test_broadcasts():
    html = await render([BroadcastNode(kind="everyone"), BroadcastNode(kind="here")])
    assert html == '<span class="mention">@everyone</span><span class="mention">@here</span>'


@pytest.mark.asyncio
async def test_emoticon_literal_and_nested():
    assert await render(EmoticonNode(content="¯\\_(ツ)_/¯")) == "¯\\_(ツ)_/¯"
    assert await render(EmoticonNode(content=[TextNode(content="<3")])) == "&lt;3"
    assert await render(EmoticonNode(content="#'")) == "&#35;&#039;"


# === REFERENCES ===


@pytest.mark.asyncio
async def test_references_resolve(resolver):
    nodes = [
        ReferenceNode(kind="channel", id="10"),
        ReferenceNode(kind="role", id="20"),
        ReferenceNode(kind="user", id="30"),
    ]
    assert await render(nodes, resolver) == (
        '<span class="mention">#general</span>'
        '<span class="mention">@moderators</span>'
        '<span class="mention">@alice</span>'
    )


@pytest.mark.asyncio
async def test_resolved_names_are_escaped():
    resolver = MappingResolver(users={"30": "<b>al&ice</b>"})
    html = await render(ReferenceNode(kind="user", id="30"), resolver)
    assert html == '<span class="mention">@&lt;b&gt;al&amp;ice&lt;/b&gt;</span>'


@pytest.mark.asyncio
async def test_failed_user_resolution_renders_raw_id(failing_resolver):
    html = await render(ReferenceNode(kind="user", id="30"), failing_resolver)
    assert html == "&lt;@30&gt;"


@pytest.mark.asyncio
async def test_missing_references_render_raw(resolver):
    nodes = [
        ReferenceNode(kind="channel", id="99"),
        ReferenceNode(kind="role", id="98"),
        ReferenceNode(kind="user", id="97"),
    ]
    assert await render(nodes, resolver) == "&lt;#99&gt;&lt;@&amp;98&gt;&lt;@97&gt;"


@pytest.mark.asyncio
async def test_slow_resolver_times_out():
    class SlowResolver(FailingResolver):
        async def resolve_user(self, user_id):
            await asyncio.sleep(5)
            return "late"

    html = await render(ReferenceNode(kind="user", id="30"), SlowResolver(), timeout=0.01)
    assert html == "&lt;@30&gt;"


@pytest.mark.asyncio
async def test_concurrent_resolution_keeps_order():
    delays = {"1": 0.05, "2": 0.0, "3": 0.02}

    class StaggeredResolver(FailingResolver):
        async def resolve_user(self, user_id):
            await asyncio.sleep(delays[user_id])
            return f"user{user_id}"

    nodes = [ReferenceNode(kind="user", id=i) for i in ("1", "2", "3")]
    sequential = await render(nodes, StaggeredResolver())
    concurrent = await render(nodes, StaggeredResolver(), concurrent=True)
    assert concurrent == sequential
    assert concurrent.index("@user1") < concurrent.index("@user2") < concurrent.index("@user3")


# === EMOJI ===


@pytest.mark.asyncio
async def test_emoji_without_id_is_literal():
    assert await render(EmojiNode(kind="twemoji", name="🔥")) == "🔥"


@pytest.mark.asyncio
async def test_emoji_resolved(resolver):
    html = await render(EmojiNode(id="40", name="pog"), resolver)
    assert html == '<img class="emoji" src="https://emoji.example/40.png" alt=":pog:" title=":pog:">'


@pytest.mark.asyncio
async def test_emoji_falls_back_to_cdn(failing_resolver):
    still = await render(EmojiNode(id="41", name="wave"), failing_resolver)
    animated = await render(EmojiNode(id="42", name="dance", animated=True))
    assert 'src="https://cdn.discordapp.com/emojis/41.png"' in still
    assert 'src="https://cdn.discordapp.com/emojis/42.gif"' in animated


# === TIMESTAMPS ===


@pytest.mark.asyncio
async def test_timestamp_short_date():
    html = await render(TimestampNode(timestamp=TS, format="d"))
    assert html == '<time datetime="2021-04-20T21:20:30Z" data-format="d">4/20/21</time>'


@pytest.mark.asyncio
async def test_timestamp_relative_uses_clock():
    now = datetime(2021, 4, 21, 0, 20, 30, tzinfo=timezone.utc)
    html = await render(TimestampNode(timestamp=TS, format="R"), now=lambda: now)
    assert ">3 hours ago</time>" in html


@pytest.mark.asyncio
async def test_timestamp_unknown_format_falls_back():
    assert await render(TimestampNode(timestamp=TS, format="x")) == f"{TS} (x)"


@pytest.mark.asyncio
async def test_timestamp_out_of_range_falls_back():
    huge = 10**20
    assert await render(TimestampNode(timestamp=huge, format="f")) == f"{huge} (f)"


# === UNKNOWN KINDS ===


@pytest.mark.asyncio
async def test_unknown_kind_terminal():
    nodes = nodes_from_json({"kind": "sparkles", "content": "<wow>"})
    assert await render(nodes) == "sparkles: &lt;wow&gt;"


@pytest.mark.asyncio
async def test_unknown_kind_container():
    nodes = nodes_from_json({"kind": "marquee", "content": [{"kind": "strong", "content": [{"kind": "text", "content": "hi"}]}]})
    assert await render(nodes) == "marquee: <b>hi</b>"


# === PIPELINE ===


@pytest.mark.asyncio
async def test_render_post_html_promotes_and_minifies():
    nodes = [TextNode(content="# Title"), BreakNode(), TextNode(content="Body & more")]
    assert await render_post_html(nodes, HtmlRenderer()) == "<h1>Title</h1>Body &amp; more"
