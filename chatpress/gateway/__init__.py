import asyncio
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse
from fastapi.staticfiles import StaticFiles
from loguru import logger

from chatpress.gateway.api import routers
from chatpress.gateway.config import Settings, get_settings
from chatpress.gateway.discord import DiscordClient
from chatpress.gateway.exceptions import APIError
from chatpress.gateway.logging_config import RequestContextMiddleware, error_response, unhandled_exception_handler
from chatpress.gateway.posts.index import HistorySource
from chatpress.gateway.posts.registry import IndexRegistry
from chatpress.gateway.refresher import run_refresher
from chatpress.gateway.resolver import EntityResolver

STATIC_DIR = Path(__file__).parent / "static"


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings

    client: DiscordClient | None = None
    source: HistorySource | None = app.state.source
    resolver: EntityResolver | None = app.state.resolver
    if source is None or resolver is None:
        client = DiscordClient(settings)
        source = source or client
        resolver = resolver or client

    registry = IndexRegistry(source, resolver, settings)
    app.state.registry = registry

    try:
        await registry.rebuild(settings.channel_id)
    except Exception as e:
        # Serve 503s until a later rebuild succeeds
        logger.exception(f"Initial index build for channel {settings.channel_id} failed: {e}")

    refresher: asyncio.Task | None = None
    if settings.refresh_interval_seconds > 0:
        refresher = asyncio.create_task(
            run_refresher(registry, [settings.channel_id], settings.refresh_interval_seconds)
        )

    yield

    if refresher is not None:
        refresher.cancel()
        await asyncio.gather(refresher, return_exceptions=True)
    await registry.close()
    if client is not None:
        await client.aclose()


async def api_error_handler(request: Request, exc: APIError):
    return error_response(request, exc.status_code, str(exc), exc.to_dict())


def create_app(
    settings: Settings | None = None,
    *,
    source: HistorySource | None = None,
    resolver: EntityResolver | None = None,
) -> FastAPI:
    """Build the site. `source` and `resolver` default to a DiscordClient created at startup."""
    if settings is None:
        settings = Settings()  # type: ignore

    app = FastAPI(
        title="chatpress",
        version="0.1.0",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.dependency_overrides[get_settings] = lambda: settings
    app.state.settings = settings
    app.state.source = source
    app.state.resolver = resolver

    app.add_middleware(RequestContextMiddleware)
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    for r in routers:
        app.include_router(r)
    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    @app.get("/health")
    async def health():
        index = app.state.registry.get(settings.channel_id)
        return {
            "status": "ok" if index else "building",
            "version": index.version if index else None,
            "posts": len(index) if index else 0,
        }

    return app
