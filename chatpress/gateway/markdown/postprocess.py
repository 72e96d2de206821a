"""String passes over HtmlRenderer output: heading promotion and minification.

A "line" starts at the beginning of the fragment, after a <br />, after a
promoted heading, at the start or end of a quote or code block, or after a
newline typed by the author. It may span several SEPARATOR-joined siblings
and ends at the next <br /> or newline. Code spans and blocks are never touched.
"""

import re
from collections.abc import Callable

from chatpress.gateway.constants import SEPARATOR

_SEP = re.escape(SEPARATOR)
_LINE_START = r"(?:^|(?<=<br />)|(?<=</h[1-3]>)|(?<=<blockquote>)|(?<=</blockquote>)|(?<=</pre>)|(?<=\n))"
_GAP = rf"[ \t{_SEP}]*"
_BLOCK_BOUNDARY = r"<br />|</?blockquote>|<pre\b"
# Non-empty, stays on one line, never crosses a line break or block tag
_BODY = rf"(?!{_GAP}(?:{_BLOCK_BOUNDARY}|\n|$))((?:(?!{_BLOCK_BOUNDARY})[^\n])+?)"
_LINE_END = r"(?:<br />|\n|$|(?=</?blockquote>|<pre\b))"

# Most specific marker first so "## x" is never read as "# " + "# x"
_SUBTEXT_RE = re.compile(rf"{_LINE_START}{_GAP}-[ \t]?#[ \t]+{_BODY}{_GAP}(?={_BLOCK_BOUNDARY}|\n|$)")
_HEADING_RES = (
    (re.compile(rf"{_LINE_START}{_GAP}###[ \t]+{_BODY}{_GAP}{_LINE_END}"), "h3"),
    (re.compile(rf"{_LINE_START}{_GAP}##[ \t]+{_BODY}{_GAP}{_LINE_END}"), "h2"),
    (re.compile(rf"{_LINE_START}{_GAP}#[ \t]+{_BODY}{_GAP}{_LINE_END}"), "h1"),
)

_CODE_RE = re.compile(r"<code\b[^>]*>.*?</code>", re.S)
# escape_html output never contains "<!--"
_CODE_SLOT_RE = re.compile(r"<!--code:(\d+)-->")
_INLINE_TAG_RE = re.compile(r"<(/?)(a|b|i|u|s|span|time)\b[^>]*>")
_BLOCK_TAG_RE = re.compile(r"[ \t\n]*(</?(?:h[1-3]|blockquote|pre)\b[^>]*>)[ \t\n]*")

_MARKDOWN_HEADING_RE = re.compile(r"^[ \t]*#[ \t]+(.+?)[ \t]*$", re.M)


def _outside_code(html: str, transform: Callable[[str], str]) -> str:
    """Run `transform` with every code span swapped for an opaque slot, then restore the spans."""
    spans: list[str] = []

    def stash(match: re.Match) -> str:
        spans.append(match.group(0))
        return f"<!--code:{len(spans) - 1}-->"

    html = transform(_CODE_RE.sub(stash, html))
    return _CODE_SLOT_RE.sub(lambda match: spans[int(match.group(1))], html)


def _balanced(fragment: str) -> bool:
    """True when every inline tag opened in `fragment` is also closed in it, in order."""
    open_tags: list[str] = []
    for match in _INLINE_TAG_RE.finditer(fragment):
        closing, tag = match.groups()
        if not closing:
            open_tags.append(tag)
        elif not open_tags or open_tags.pop() != tag:
            return False
    return not open_tags


def _wrap(open_tag: str, close_tag: str) -> Callable[[re.Match], str]:
    def replace(match: re.Match) -> str:
        body = match.group(1)
        # A line that starts or ends inside an inline element stays as typed
        if not _balanced(body):
            return match.group(0)
        return f"{open_tag}{body}{close_tag}"

    return replace


def _promote(html: str) -> str:
    html = _SUBTEXT_RE.sub(_wrap('<span class="sub">', "</span>"), html)
    for pattern, tag in _HEADING_RES:
        html = pattern.sub(_wrap(f"<{tag}>", f"</{tag}>"), html)
    return html


def promote_headings(html: str) -> str:
    """Turn '# ', '## ', '### ' lines into h1-h3 and '-# ' lines into subtext spans.

    Headings swallow their trailing line break; subtext keeps it. Separators
    are deleted afterwards.
    """
    return strip_separators(_outside_code(html, _promote))


def strip_separators(html: str) -> str:
    return html.replace(SEPARATOR, "")


def minify_html(html: str) -> str:
    """Drop separators and the whitespace around block-level tags."""
    html = strip_separators(html)
    return _outside_code(html, lambda part: _BLOCK_TAG_RE.sub(r"\1", part)).strip()


def extract_heading(markdown: str) -> str | None:
    """First '# ' line of raw message text, without the marker."""
    match = _MARKDOWN_HEADING_RE.search(markdown)
    return match.group(1) if match else None
