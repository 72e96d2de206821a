"""HTML chrome around rendered message bodies: bylines and listing cards.

Everything interpolated here that did not come out of HtmlRenderer (author
names, ids) is escaped exactly once.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

from chatpress.gateway.markdown.renderer import escape_html
from chatpress.gateway.markdown.timestamps import medium_date


def display_date(dt: datetime, tz_name: str) -> str:
    return medium_date(dt.astimezone(ZoneInfo(tz_name)))


def byline(author: str, created_at: datetime, tz_name: str) -> str:
    return f"<i>Written by <b>{escape_html(author)}</b> on <b>{display_date(created_at, tz_name)}</b></i>"


def post_card(
    post_id: str,
    author: str,
    created_at: datetime,
    body_html: str,
    attachment_count: int,
    tz_name: str,
) -> str:
    attachments = f"{attachment_count} attachments<br />" if attachment_count else ""
    return (
        '<div class="newsPost">'
        f"{byline(author, created_at, tz_name)}<br />"
        f"{body_html}<br /><br />"
        f"{attachments}"
        f'<a href="/post/{escape_html(post_id)}">Link to post for sharing</a>'
        "</div>"
    )


def attachment_list(urls: tuple[str, ...] | list[str]) -> str:
    if not urls:
        return ""
    images = "".join(f'<img src="{escape_html(url)}" class="attachment">' for url in urls)
    return f'<div class="attachmentList">{images}</div>'
