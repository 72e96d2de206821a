"""Chat-flavored markdown parsing using markdown-it-py.

Configures markdown-it close to what chat clients actually render:
- CommonMark emphasis, strikethrough, fenced code, quotes, links, autolinks
- no headings, lists, rules, indented code, raw HTML, images or entities:
  '#' lines stay text and are promoted later on the rendered HTML
- chat extensions: ||spoilers||, <@user> <@&role> <#channel> mentions,
  <:custom:emoji>, <t:unix:format> timestamps, @everyone/@here, bare URLs
- a backslash-escaped hash stays literal and never becomes a heading
"""

import re

from markdown_it import MarkdownIt
from markdown_it.rules_inline import StateInline
from markdown_it.tree import SyntaxTreeNode

_DISABLED_RULES = [
    "code",
    "hr",
    "list",
    "reference",
    "html_block",
    "heading",
    "lheading",
    "image",
    "html_inline",
    "entity",
]

# markdown-it's own terminator set plus the chars our rules start on
_TERMINATOR_CHARS = frozenset("\n!#$%&*+-:<=>@[\\]^_`{}~|¯")

_REFERENCE_RE = re.compile(
    r"<(?:"
    r"@!?(?P<user_id>\d+)"
    r"|@&(?P<role_id>\d+)"
    r"|#(?P<channel_id>\d+)"
    r"|(?P<animated>a?):(?P<emoji_name>\w+):(?P<emoji_id>\d+)"
    r"|t:(?P<timestamp>-?\d+)(?::(?P<format>[A-Za-z]))?"
    r")>"
)
_BROADCAST_RE = re.compile(r"@(everyone|here)\b")
_URL_SCHEME_RE = re.compile(r"(?<!\w)(https?)$", re.IGNORECASE)
_URL_TAIL_RE = re.compile(r"://[^\s<]*[^\s<.,:;\"')\]!?*_~|]")
_SHRUG = "¯\\_(ツ)_/¯"


def _text_rule(state: StateInline, silent: bool) -> bool:
    """Plain text run; stops on every char another inline rule may start on."""
    pos = state.pos
    while pos < state.posMax and state.src[pos] not in _TERMINATOR_CHARS:
        pos += 1
    if pos == state.pos:
        return False
    if not silent:
        state.pending += state.src[state.pos : pos]
    state.pos = pos
    return True


def _reference_rule(state: StateInline, silent: bool) -> bool:
    if state.src[state.pos] != "<":
        return False
    match = _REFERENCE_RE.match(state.src, state.pos, state.posMax)
    if match is None:
        return False
    if not silent:
        token = state.push("chat_reference", "", 0)
        token.content = match.group(0)
        token.meta = {key: value for key, value in match.groupdict().items() if value is not None}
    state.pos = match.end()
    return True


def _broadcast_rule(state: StateInline, silent: bool) -> bool:
    if state.src[state.pos] != "@":
        return False
    match = _BROADCAST_RE.match(state.src, state.pos, state.posMax)
    if match is None:
        return False
    if not silent:
        token = state.push("chat_broadcast", "", 0)
        token.content = match.group(0)
        token.meta = {"kind": match.group(1)}
    state.pos = match.end()
    return True


def _spoiler_rule(state: StateInline, silent: bool) -> bool:
    start = state.pos
    if start + 2 > state.posMax or state.src[start : start + 2] != "||":
        return False
    end = state.src.find("||", start + 2, state.posMax)
    if end == -1 or end == start + 2:
        return False
    if not silent:
        old_max = state.posMax
        state.pos = start + 2
        state.posMax = end
        token = state.push("spoiler_open", "span", 1)
        token.markup = "||"
        state.md.inline.tokenize(state)
        token = state.push("spoiler_close", "span", -1)
        token.markup = "||"
        state.posMax = old_max
    state.pos = end + 2
    return True


def _emoticon_rule(state: StateInline, silent: bool) -> bool:
    end = state.pos + len(_SHRUG)
    if end > state.posMax or state.src[state.pos : end] != _SHRUG:
        return False
    if not silent:
        token = state.push("chat_emoticon", "", 0)
        token.content = _SHRUG
    state.pos = end
    return True


def _escaped_hash_rule(state: StateInline, silent: bool) -> bool:
    """`\\#` is a literal hash that must never start a heading once rendered."""
    pos = state.pos
    if pos + 1 >= state.posMax or state.src[pos : pos + 2] != "\\#":
        return False
    if not silent:
        token = state.push("chat_escaped_hash", "", 0)
        token.content = "#"
    state.pos = pos + 2
    return True


def _url_rule(state: StateInline, silent: bool) -> bool:
    """Bare http(s) URL. Triggers on ':' once the scheme is already in pending text."""
    if state.src[state.pos] != ":" or getattr(state, "linkLevel", 0) > 0:
        return False
    scheme = _URL_SCHEME_RE.search(state.pending)
    if scheme is None:
        return False
    match = _URL_TAIL_RE.match(state.src, state.pos, state.posMax)
    if match is None:
        return False
    url = scheme.group(1) + match.group(0)
    href = state.md.normalizeLink(url)
    if not state.md.validateLink(href):
        return False
    if not silent:
        state.pending = state.pending[: scheme.start(1)]
        token = state.push("url_open", "a", 1)
        token.attrs = {"href": href}
        token.markup = "linkify"
        token = state.push("text", "", 0)
        token.content = state.md.normalizeLinkText(url)
        token = state.push("url_close", "a", -1)
        token.markup = "linkify"
    state.pos = match.end()
    return True


def create_parser() -> MarkdownIt:
    """Create configured markdown-it parser."""
    md = MarkdownIt("commonmark")
    md.enable("strikethrough")
    md.disable(_DISABLED_RULES)
    md.inline.ruler.at("text", _text_rule)
    md.inline.ruler.after("text", "chat_url", _url_rule)
    md.inline.ruler.before("escape", "chat_escaped_hash", _escaped_hash_rule)
    md.inline.ruler.before("autolink", "chat_reference", _reference_rule)
    md.inline.ruler.before("autolink", "chat_broadcast", _broadcast_rule)
    md.inline.ruler.before("autolink", "chat_spoiler", _spoiler_rule)
    md.inline.ruler.before("autolink", "chat_emoticon", _emoticon_rule)
    return md


# Singleton parser instance
_parser: MarkdownIt | None = None


def get_parser() -> MarkdownIt:
    """Get or create the singleton parser instance."""
    global _parser
    if _parser is None:
        _parser = create_parser()
    return _parser


def parse_markdown(text: str) -> SyntaxTreeNode:
    """Parse chat markdown text into a markdown-it syntax tree.

    Args:
        text: Raw message content

    Returns:
        Root SyntaxTreeNode of the AST
    """
    parser = get_parser()
    tokens = parser.parse(text)
    return SyntaxTreeNode(tokens)
