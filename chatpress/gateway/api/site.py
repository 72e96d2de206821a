from fastapi import APIRouter
from fastapi.responses import HTMLResponse, RedirectResponse

from chatpress.gateway.deps import CurrentIndex, SettingsDep
from chatpress.gateway.exceptions import ResourceNotFoundError
from chatpress.gateway.posts.pages import (
    og_meta,
    oembed,
    oembed_link,
    page_shell,
    rendered_page,
    rendered_post,
    search_results,
)

router = APIRouter(tags=["Site"])


@router.get("/", response_class=HTMLResponse)
async def news_list(index: CurrentIndex, settings: SettingsDep, page: int | None = None) -> HTMLResponse:
    """Paginated listing of every post, newest first."""
    meta = og_meta(
        "News List",
        f"Start reading {settings.site_name} news articles online today.",
        settings,
        len(index),
    )
    content = rendered_page(index, page, settings.page_size)
    return HTMLResponse(page_shell("News List", content, meta, settings))


@router.get("/search", response_class=HTMLResponse, response_model=None)
async def search_posts(
    index: CurrentIndex,
    settings: SettingsDep,
    query: str | None = None,
    page: int | None = None,
) -> HTMLResponse | RedirectResponse:
    if not query:
        return RedirectResponse("/", status_code=302)
    meta = og_meta(
        f"{query} - Search",
        f"Find out the search results for {query} today here at {settings.site_name}.",
        settings,
        len(index),
    )
    content = search_results(index, query, page, settings.page_size)
    return HTMLResponse(page_shell(f"Search - {query}", content, meta, settings))


@router.get("/post/{post_id}", response_class=HTMLResponse)
async def read_post(post_id: str, index: CurrentIndex, settings: SettingsDep) -> HTMLResponse:
    post = index.get_post(post_id)
    if post is None:
        raise ResourceNotFoundError("Post", post_id)
    content = rendered_post(index, post_id, settings)
    meta = og_meta(post.title, post.description, settings, len(index), oembed_link(settings.base_url, post_id))
    return HTMLResponse(page_shell(post.title, content, meta, settings))


@router.get("/post/{post_id}/oembed.json")
async def read_post_oembed(post_id: str, index: CurrentIndex, settings: SettingsDep) -> dict:
    post = index.get_post(post_id)
    if post is None:
        raise ResourceNotFoundError("Post", post_id)
    return oembed(post, settings, index.channel_id)
