"""Chat-flavored markdown: parsing, AST models, HTML/plaintext rendering, post-processing."""

from chatpress.gateway.markdown.models import Node, UnknownNode, nodes_from_json
from chatpress.gateway.markdown.parser import parse_markdown
from chatpress.gateway.markdown.postprocess import extract_heading, minify_html, promote_headings
from chatpress.gateway.markdown.renderer import (
    HtmlRenderer,
    PlaintextRenderer,
    escape_html,
    render_post_html,
)
from chatpress.gateway.markdown.transformer import (
    ChatTransformer,
    parse_to_nodes,
    transform_to_nodes,
)

__all__ = [
    # Parser
    "parse_markdown",
    # Transformer
    "ChatTransformer",
    "transform_to_nodes",
    "parse_to_nodes",
    # Models
    "Node",
    "UnknownNode",
    "nodes_from_json",
    # Rendering
    "HtmlRenderer",
    "PlaintextRenderer",
    "render_post_html",
    "escape_html",
    # Post-processing
    "promote_headings",
    "minify_html",
    "extract_heading",
]
