"""Transform the markdown-it syntax tree into chat AST nodes.

Walks the SyntaxTreeNode produced by parser.parse_markdown and emits the
node kinds from models.py. Line breaks inside a paragraph and blank lines
between paragraphs both become `br` nodes, since chat messages keep the
author's line structure.
"""

from markdown_it.tree import SyntaxTreeNode

from chatpress.gateway.markdown.models import (
    BlockQuoteNode,
    BreakNode,
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
)
from chatpress.gateway.markdown.parser import parse_markdown


class ChatTransformer:
    """Transforms markdown-it AST to chat AST nodes."""

    def transform(self, ast: SyntaxTreeNode) -> list[Node]:
        """Transform AST root to a node sequence."""
        return self._transform_blocks(ast.children)

    def _transform_blocks(self, blocks: list[SyntaxTreeNode]) -> list[Node]:
        nodes: list[Node] = []
        previous: SyntaxTreeNode | None = None
        for block in blocks:
            if previous is not None and previous.type == block.type == "paragraph":
                # blank line between paragraphs
                nodes.extend([BreakNode(), BreakNode()])
            nodes.extend(self._transform_block(block))
            previous = block
        return nodes

    def _transform_block(self, node: SyntaxTreeNode) -> list[Node]:
        handlers = {
            "paragraph": self._transform_paragraph,
            "fence": self._transform_fence,
            "blockquote": self._transform_blockquote,
        }

        handler = handlers.get(node.type)
        if handler:
            return handler(node)

        # Other block types are disabled in the parser
        if node.content:
            return [TextNode(content=node.content)]
        return []

    def _transform_paragraph(self, node: SyntaxTreeNode) -> list[Node]:
        inline = node.children[0] if node.children else None
        if not inline:
            return []
        return self._transform_inline(inline.children)

    def _transform_fence(self, node: SyntaxTreeNode) -> list[Node]:
        lang = (node.info or "").strip() or None
        return [CodeBlockNode(lang=lang, content=(node.content or "").rstrip("\n"))]

    def _transform_blockquote(self, node: SyntaxTreeNode) -> list[Node]:
        return [BlockQuoteNode(content=self._transform_blocks(node.children))]

    # === INLINE ===

    def _transform_inline(self, children: list[SyntaxTreeNode]) -> list[Node]:
        result: list[Node] = []
        for child in children:
            result.extend(self._transform_inline_node(child))
        return result

    def _transform_inline_node(self, node: SyntaxTreeNode) -> list[Node]:
        if node.type == "text":
            return [TextNode(content=node.content or "")] if node.content else []
        elif node.type in ("softbreak", "hardbreak"):
            return [BreakNode()]
        elif node.type == "strong":
            kind = "underline" if node.markup == "__" else "strong"
            return [StyleNode(kind=kind, content=self._transform_inline(node.children))]
        elif node.type == "em":
            return [StyleNode(kind="em", content=self._transform_inline(node.children))]
        elif node.type == "s":
            return [StyleNode(kind="strikethrough", content=self._transform_inline(node.children))]
        elif node.type == "spoiler":
            return [StyleNode(kind="spoiler", content=self._transform_inline(node.children))]
        elif node.type == "code_inline":
            return [InlineCodeNode(content=node.content or "")]
        elif node.type == "link":
            kind = "autolink" if node.markup == "autolink" else "link"
            target = str(node.attrs.get("href", ""))
            return [LinkNode(kind=kind, target=target, content=self._transform_inline(node.children))]
        elif node.type == "url":
            target = str(node.attrs.get("href", ""))
            return [LinkNode(kind="url", target=target, content=self._transform_inline(node.children))]
        elif node.type == "chat_reference":
            return [self._transform_reference(node.meta, node.content or "")]
        elif node.type == "chat_broadcast":
            return [BroadcastNode(kind=node.meta["kind"])]
        elif node.type == "chat_emoticon":
            return [EmoticonNode(content=node.content or "")]
        elif node.type == "chat_escaped_hash":
            return [EmoticonNode(content="#")]
        else:
            # Unknown type, return as text if has content
            if node.content:
                return [TextNode(content=node.content)]
            return []

    def _transform_reference(self, meta: dict, raw: str) -> Node:
        if "user_id" in meta:
            return ReferenceNode(kind="user", id=meta["user_id"])
        if "role_id" in meta:
            return ReferenceNode(kind="role", id=meta["role_id"])
        if "channel_id" in meta:
            return ReferenceNode(kind="channel", id=meta["channel_id"])
        if "emoji_id" in meta:
            return EmojiNode(
                kind="emoji",
                id=meta["emoji_id"],
                name=meta["emoji_name"],
                animated=meta.get("animated") == "a",
            )
        if "timestamp" in meta:
            return TimestampNode(timestamp=int(meta["timestamp"]), format=meta.get("format", "f"))
        return TextNode(content=raw)


def transform_to_nodes(ast: SyntaxTreeNode) -> list[Node]:
    """Transform markdown-it AST to chat AST nodes."""
    return ChatTransformer().transform(ast)


def parse_to_nodes(text: str) -> list[Node]:
    """Parse raw message text straight to chat AST nodes."""
    return transform_to_nodes(parse_markdown(text))
