"""Plugin listing endpoints."""

from typing import Any

from fastapi import APIRouter, Depends  # type: ignore[import-untyped]

from kimai.api.auth import get_current_user
from kimai.api.dependencies import get_config
from kimai.core.config import ConfigManager
from kimai.core.models import User
from kimai.core.security import deny_access_unless_granted
from kimai.plugin import MarketplaceClient, PluginManager

router = APIRouter()


def marketplace_client(config: ConfigManager) -> MarketplaceClient:
    return MarketplaceClient(
        url=config.get("plugins.marketplace_url"),
        cache_dir=config.get_path("general.data_dir").parent / "cache",
        ttl=int(config.get("plugins.cache_ttl", 86400)),
    )


@router.get("/")
async def list_plugins(
    current_user: User = Depends(get_current_user),
    config: ConfigManager = Depends(get_config),
) -> list[dict[str, Any]]:
    """Installed plugins with the metadata of their composer.json."""
    deny_access_unless_granted(current_user, "plugins")
    manager = PluginManager(config.get_path("plugins.directory"))
    plugins = manager.get_plugins()
    for plugin in plugins:
        manager.load_metadata(plugin)
    return [p.to_dict() for p in plugins]


@router.get("/marketplace")
async def list_marketplace(
    current_user: User = Depends(get_current_user),
    config: ConfigManager = Depends(get_config),
) -> list[dict[str, Any]]:
    """Plugins offered in the marketplace; empty if it cannot be reached."""
    deny_access_unless_granted(current_user, "plugins")
    return marketplace_client(config).get_extensions()
