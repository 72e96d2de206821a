"""Output fragments served by the site: listing pages, post pages, search, RSS, sitemap, oEmbed.

Post bodies and cards are stored already rendered and are inserted as is.
Everything else (titles, queries, descriptions, names) is escaped here once.
"""

from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Any
from urllib.parse import quote_plus

from chatpress.gateway.config import Settings
from chatpress.gateway.constants import DEFAULT_PAGE_SIZE, MESSAGE_URL
from chatpress.gateway.exceptions import ResourceNotFoundError
from chatpress.gateway.markdown.renderer import escape_html
from chatpress.gateway.posts.cards import attachment_list, byline, display_date
from chatpress.gateway.posts.index import ChannelIndex, page_count, paginate, search
from chatpress.gateway.posts.models import RenderedPost


def _base(base_url: str) -> str:
    return base_url.rstrip("/")


def post_url(base_url: str, post_id: str) -> str:
    return f"{_base(base_url)}/post/{post_id}"


def _normalize_page(page: int | None) -> int:
    return page if page and page > 0 else 1


def _pager(path: str, page: int, total: int, page_size: int, query: str | None = None) -> str:
    prefix = f"{path}?query={quote_plus(query)}&amp;" if query is not None else f"{path}?"
    links = []
    if page > 1:
        links.append(f'<a href="{prefix}page={page - 1}">Previous Page</a>')
    if page < page_count(total, page_size):
        links.append(f'<a href="{prefix}page={page + 1}">Next Page</a>')
    return "<br />" + " ".join(links) if links else ""


def rendered_page(index: ChannelIndex, page: int | None, page_size: int = DEFAULT_PAGE_SIZE) -> str:
    """One listing page of post cards with previous/next links."""
    page = _normalize_page(page)
    cards = "".join(post.html for post in paginate(index.posts, page, page_size))
    return cards + _pager("/", page, len(index.posts), page_size)


def rendered_post(index: ChannelIndex, post_id: str, settings: Settings) -> str:
    """Full post followed by the most recent posts. Raises ResourceNotFoundError."""
    post = index.get_post(post_id)
    if post is None:
        raise ResourceNotFoundError("Post", post_id)

    recent = "".join(p.html for p in paginate(index.posts, 1, settings.page_size))
    more = '<br /><a href="/?page=2">See more</a>' if len(index.posts) > settings.page_size else ""
    return (
        f"<div>{byline(post.author, post.created_at, settings.display_timezone)}<br />"
        f"{post.body_html}{attachment_list(post.attachments)}</div>"
        f"<h2>Other Recent Posts</h2>{recent}{more}"
    )


def search_results(
    index: ChannelIndex,
    query: str,
    page: int | None,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> str:
    page = _normalize_page(page)
    results = search(index.posts, query)
    cards = "".join(post.html for post in paginate(results, page, page_size))
    return f"<span>{len(results)} results</span>{cards}{_pager('/search', page, len(results), page_size, query)}"


def og_meta(title: str, description: str, settings: Settings, post_count: int, extra: str = "") -> str:
    return (
        f'<meta property="og:title" content="{escape_html(title)}">'
        f'<meta property="og:description" content="{escape_html(description)}">'
        f'<meta property="og:site_name" content="{escape_html(settings.site_name)} &bull; {post_count} articles">'
        f"{extra}"
    )


def oembed_link(base_url: str, post_id: str) -> str:
    href = escape_html(f"{post_url(base_url, post_id)}/oembed.json")
    return f'<link type="application/json+oembed" href="{href}" />'


def page_shell(title: str, content: str, meta: str, settings: Settings) -> str:
    """Complete HTML document. `title` is plaintext; `content` and `meta` are trusted HTML."""
    site = escape_html(settings.site_name)
    feed = escape_html(f"{_base(settings.base_url)}/feed.rss")
    return (
        "<!DOCTYPE html>"
        "<html>"
        "<head>"
        '<meta charset="utf-8">'
        '<meta name="viewport" content="width=device-width, initial-scale=1">'
        f"<title>{escape_html(title)} - {site}</title>"
        '<link rel="stylesheet" href="/static/styles.css">'
        f'<link rel="alternate" type="application/rss+xml" title="{site} RSS Feed" href="{feed}">'
        f"{meta}"
        "</head>"
        "<body>"
        "<header>"
        f'<a href="/">{site}</a>'
        '<form action="/search">'
        '<input type="text" name="query" placeholder="Search...">'
        '<input type="submit" value="Search">'
        "</form>"
        "</header>"
        f"<main>{content}</main>"
        '<footer><a href="/feed.rss">RSS Feed</a></footer>'
        '<script src="/static/main.js" defer></script>'
        "</body>"
        "</html>"
    )


def rss_items(
    index: ChannelIndex,
    base_url: str,
    max_count: int | None = None,
    page: int | None = None,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> list[str]:
    """<item> fragments in index order, optionally paged and/or capped."""
    posts: list[RenderedPost] = list(index.posts) if page is None else paginate(index.posts, page, page_size)
    if max_count is not None:
        posts = posts[:max_count]
    return [
        "<item>"
        f"<title>{escape_html(post.title)}</title>"
        f"<link>{escape_html(post_url(base_url, post.id))}</link>"
        f"<description>{index.rss_descriptions.get(post.id, '')}</description>"
        f"<pubDate>{format_datetime(post.created_at.astimezone(timezone.utc), usegmt=True)}</pubDate>"
        f'<guid isPermaLink="false">{escape_html(post.id)}</guid>'
        "</item>"
        for post in posts
    ]


def rss_feed(index: ChannelIndex, settings: Settings, max_count: int | None = None) -> str:
    base = _base(settings.base_url)
    items = "\n".join(rss_items(index, base, max_count=max_count))
    return (
        '<?xml version="1.0" encoding="UTF-8" ?>\n'
        '<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">\n'
        "<channel>\n"
        f"<title>{escape_html(settings.site_name)}</title>\n"
        f"<description>{escape_html(settings.site_description)}</description>\n"
        f"<link>{escape_html(base)}</link>\n"
        "<docs>https://www.rssboard.org/rss-specification</docs>\n"
        f'<atom:link href="{escape_html(base)}/feed.rss" rel="self" type="application/rss+xml" />\n'
        f"{items}\n"
        "</channel>\n"
        "</rss>"
    )


def sitemap_entries(index: ChannelIndex, base_url: str) -> list[tuple[str, datetime]]:
    """(url, last modified) for the front page and every post."""
    newest = max((post.last_modified for post in index.posts), default=index.built_at)
    entries = [(f"{_base(base_url)}/", newest)]
    entries.extend((post_url(base_url, post.id), post.last_modified) for post in index.posts)
    return entries


def sitemap_xml(entries: list[tuple[str, datetime]]) -> str:
    urls = "".join(
        f"<url><loc>{escape_html(url)}</loc><lastmod>{modified.astimezone(timezone.utc).isoformat()}</lastmod></url>"
        for url, modified in entries
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{urls}</urlset>'
    )


def oembed(post: RenderedPost, settings: Settings, channel_id: str) -> dict[str, Any]:
    """oEmbed link response; author_url points back at the chat message when the guild is known."""
    if settings.guild_id:
        author_url = MESSAGE_URL.format(guild_id=settings.guild_id, channel_id=channel_id, message_id=post.id)
    else:
        author_url = post_url(settings.base_url, post.id)
    return {
        "version": "1.0",
        "type": "link",
        "title": post.title,
        "author_name": f"{post.author} • {display_date(post.created_at, settings.display_timezone)}",
        "author_url": author_url,
        "provider_name": settings.site_name,
        "provider_url": f"{_base(settings.base_url)}/",
    }
