from typing import Annotated

from fastapi import Depends, Request

from chatpress.gateway.config import Settings, get_settings
from chatpress.gateway.posts.index import ChannelIndex
from chatpress.gateway.posts.registry import IndexRegistry

SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_registry(request: Request) -> IndexRegistry:
    return request.app.state.registry


RegistryDep = Annotated[IndexRegistry, Depends(get_registry)]


def get_channel_index(registry: RegistryDep, settings: SettingsDep) -> ChannelIndex:
    """Current index of the configured channel. Raises IndexNotReadyError before the first build."""
    return registry.require(settings.channel_id)


CurrentIndex = Annotated[ChannelIndex, Depends(get_channel_index)]
