"""AST node models for chat-flavored markdown.

Every node has a `kind`. Terminal nodes carry `content: str`, container nodes
carry `content: list[Node]`. `Node` is a closed tagged union; any kind we don't
know validates into `UnknownNode` so newer markup degrades instead of failing.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Tag, TypeAdapter

# === TERMINALS ===


class TextNode(BaseModel):
    kind: Literal["text"] = "text"
    content: str


class InlineCodeNode(BaseModel):
    kind: Literal["inlineCode"] = "inlineCode"
    content: str


class CodeBlockNode(BaseModel):
    kind: Literal["codeBlock"] = "codeBlock"
    lang: str | None = None  # kept verbatim
    content: str


class BreakNode(BaseModel):
    kind: Literal["br", "newline"] = "br"


class BroadcastNode(BaseModel):
    kind: Literal["here", "everyone"]


class ReferenceNode(BaseModel):
    """Channel, role or user mention; needs a resolver to become a display name."""

    kind: Literal["channel", "role", "user"]
    id: str


class EmojiNode(BaseModel):
    """Custom emoji when `id` is set, literal glyph otherwise."""

    kind: Literal["emoji", "twemoji"] = "emoji"
    id: str | None = None
    name: str
    animated: bool = False


class TimestampNode(BaseModel):
    kind: Literal["timestamp"] = "timestamp"
    timestamp: int  # unix seconds
    format: str = "f"


# === CONTAINERS ===


class LinkNode(BaseModel):
    """`link` is a masked link; `url`/`autolink` open in a new browsing context."""

    kind: Literal["link", "url", "autolink"] = "link"
    target: str
    content: list["Node"]


class BlockQuoteNode(BaseModel):
    kind: Literal["blockQuote"] = "blockQuote"
    content: list["Node"]


class StyleNode(BaseModel):
    kind: Literal["em", "strong", "underline", "strikethrough", "spoiler"]
    content: list["Node"]


class EmoticonNode(BaseModel):
    """Text kept verbatim, never reinterpreted as markup."""

    kind: Literal["emoticon"] = "emoticon"
    content: str | list["Node"]


class UnknownNode(BaseModel):
    """Fallback arm: rendered as "<kind>: <content>"."""

    model_config = ConfigDict(extra="allow")

    kind: str
    content: str | list["Node"] = ""


_KIND_TAGS = {
    "text": "text",
    "inlineCode": "inlineCode",
    "codeBlock": "codeBlock",
    "br": "break",
    "newline": "break",
    "here": "broadcast",
    "everyone": "broadcast",
    "channel": "reference",
    "role": "reference",
    "user": "reference",
    "emoji": "emoji",
    "twemoji": "emoji",
    "timestamp": "timestamp",
    "link": "link",
    "url": "link",
    "autolink": "link",
    "blockQuote": "blockQuote",
    "em": "style",
    "strong": "style",
    "underline": "style",
    "strikethrough": "style",
    "spoiler": "style",
    "emoticon": "emoticon",
}


def _node_tag(value: Any) -> str:
    kind = value.get("kind") if isinstance(value, dict) else getattr(value, "kind", None)
    return _KIND_TAGS.get(kind, "unknown")


Node = Annotated[
    Union[
        Annotated[TextNode, Tag("text")],
        Annotated[InlineCodeNode, Tag("inlineCode")],
        Annotated[CodeBlockNode, Tag("codeBlock")],
        Annotated[BreakNode, Tag("break")],
        Annotated[BroadcastNode, Tag("broadcast")],
        Annotated[ReferenceNode, Tag("reference")],
        Annotated[EmojiNode, Tag("emoji")],
        Annotated[TimestampNode, Tag("timestamp")],
        Annotated[LinkNode, Tag("link")],
        Annotated[BlockQuoteNode, Tag("blockQuote")],
        Annotated[StyleNode, Tag("style")],
        Annotated[EmoticonNode, Tag("emoticon")],
        Annotated[UnknownNode, Tag("unknown")],
    ],
    Discriminator(_node_tag),
]

# Update forward references
LinkNode.model_rebuild()
BlockQuoteNode.model_rebuild()
StyleNode.model_rebuild()
EmoticonNode.model_rebuild()
UnknownNode.model_rebuild()

_nodes_adapter = TypeAdapter(list[Node])


def nodes_from_json(data: Any) -> list[Node]:
    """Validate a parser-produced JSON tree (a single node or a list) into AST nodes."""
    if isinstance(data, dict):
        data = [data]
    return _nodes_adapter.validate_python(data)
