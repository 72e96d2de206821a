from fastapi import APIRouter, Response

from chatpress.gateway.deps import CurrentIndex, SettingsDep
from chatpress.gateway.exceptions import ValidationError
from chatpress.gateway.posts.pages import rss_feed, sitemap_entries, sitemap_xml

router = APIRouter(tags=["Feeds"])


@router.get("/feed.rss")
async def feed(index: CurrentIndex, settings: SettingsDep, limit: int | None = None) -> Response:
    """RSS 2.0 feed of the channel, newest first."""
    if limit is not None and limit < 1:
        raise ValidationError(f"limit must be positive, got {limit}")
    return Response(rss_feed(index, settings, max_count=limit), media_type="application/rss+xml")


@router.get("/sitemap.xml")
async def sitemap(index: CurrentIndex, settings: SettingsDep) -> Response:
    return Response(sitemap_xml(sitemap_entries(index, settings.base_url)), media_type="application/xml")
