"""Periodically rebuilds channel indexes.

Stands in for platform change notifications. Every tick rebuilds each channel
through the registry, so a tick that lands during an in-flight rebuild joins it.
"""

import asyncio

from loguru import logger

from chatpress.gateway.posts.registry import IndexRegistry


async def run_refresher(
    registry: IndexRegistry,
    channel_ids: list[str],
    interval_s: int,
    name: str = "refresh",
) -> None:
    """Rebuild `channel_ids` every `interval_s` seconds until cancelled.

    Args:
        registry: Registry owning the channel indexes
        channel_ids: Channels to keep fresh
        interval_s: Seconds between rebuild rounds
        name: Name for logging
    """
    logger.info(f"{name} loop starting (channels={channel_ids}, interval={interval_s}s)")

    while True:
        try:
            await asyncio.sleep(interval_s)
            await _refresh_all(registry, channel_ids)
        except asyncio.CancelledError:
            logger.info(f"{name} loop shutting down")
            raise
        except Exception as e:
            logger.exception(f"Error in {name} loop: {e}")


async def _refresh_all(registry: IndexRegistry, channel_ids: list[str]) -> None:
    for channel_id in channel_ids:
        try:
            index = await registry.rebuild(channel_id)
        except Exception as e:
            current = registry.get(channel_id)
            kept = f"keeping v{current.version}" if current else "no index yet"
            logger.warning(f"Scheduled rebuild of channel {channel_id} failed ({kept}): {e!r}")
            continue
        logger.debug(f"Channel {channel_id} refreshed to v{index.version} ({len(index)} posts)")
