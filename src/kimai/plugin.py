"""Installed plugin discovery and the plugin marketplace listing.

Plugins are bundle directories named ``<Name>Bundle`` holding a
``composer.json``. Only their metadata is read; plugin code is never loaded.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_HOMEPAGE = "https://www.kimai.org/store/"
BUNDLE_SUFFIX = "Bundle"
CACHE_FILE = "marketplace.json"


@dataclass
class PluginMetadata:
    kimai_version: str = "unknown"
    version: str = "unknown"
    description: str = ""
    homepage: str = DEFAULT_HOMEPAGE

    @classmethod
    def load(cls, path: Path) -> Optional["PluginMetadata"]:
        """Read metadata from ``composer.json`` in the plugin directory.

        Returns None if the file is missing or unreadable.
        """
        composer = Path(path) / "composer.json"
        if not composer.is_file():
            return None
        try:
            data = json.loads(composer.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Cannot read plugin metadata {composer}: {e}")
            return None

        kimai = data.get("extra", {}).get("kimai", {})
        return cls(
            kimai_version=str(kimai.get("require", "unknown")),
            version=str(kimai.get("version", "unknown")),
            description=data.get("description", ""),
            homepage=data.get("homepage") or DEFAULT_HOMEPAGE,
        )


@dataclass
class Plugin:
    name: str
    path: Path
    metadata: Optional[PluginMetadata] = None

    @property
    def id(self) -> str:
        return self.name[: -len(BUNDLE_SUFFIX)] if self.name.endswith(BUNDLE_SUFFIX) else self.name

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id, "name": self.name, "path": str(self.path)}
        if self.metadata is not None:
            result.update(
                {
                    "version": self.metadata.version,
                    "kimai_version": self.metadata.kimai_version,
                    "description": self.metadata.description,
                    "homepage": self.metadata.homepage,
                }
            )
        return result


class PluginManager:
    def __init__(self, directory: Optional[Path] = None):
        self._plugins: dict[str, Plugin] = {}
        if directory is not None:
            self.discover(Path(directory))

    def discover(self, directory: Path) -> None:
        if not directory.is_dir():
            logger.debug(f"Plugin directory {directory} does not exist")
            return
        for path in sorted(directory.iterdir()):
            if path.is_dir() and path.name.endswith(BUNDLE_SUFFIX) and (path / "composer.json").is_file():
                self.add_plugin(Plugin(name=path.name, path=path))

    def add_plugin(self, plugin: Plugin) -> None:
        """Register a plugin; a second plugin with the same name is ignored."""
        if plugin.name in self._plugins:
            return
        self._plugins[plugin.name] = plugin

    def get_plugins(self) -> list[Plugin]:
        return list(self._plugins.values())

    def get_plugin(self, name: str) -> Optional[Plugin]:
        return self._plugins.get(name)

    def load_metadata(self, plugin: Plugin) -> None:
        plugin.metadata = PluginMetadata.load(plugin.path)


@dataclass
class MarketplaceClient:
    """Fetch the public plugin list and cache it on disk."""

    url: str
    cache_dir: Path
    ttl: int = 86400
    client: Optional[httpx.Client] = field(default=None, repr=False)

    @property
    def cache_file(self) -> Path:
        return Path(self.cache_dir) / CACHE_FILE

    def _read_cache(self) -> Optional[list[dict[str, Any]]]:
        path = self.cache_file
        if not path.is_file() or time.time() - path.stat().st_mtime > self.ttl:
            return None
        try:
            data: list[dict[str, Any]] = json.loads(path.read_text(encoding="utf-8"))
            return data
        except (OSError, json.JSONDecodeError):
            return None

    def clear_cache(self) -> bool:
        if self.cache_file.is_file():
            self.cache_file.unlink()
            return True
        return False

    def get_extensions(self) -> list[dict[str, Any]]:
        """Marketplace entries; an empty list when the service fails."""
        cached = self._read_cache()
        if cached is not None:
            return cached

        http = self.client or httpx.Client(timeout=10.0, follow_redirects=True)
        try:
            response = http.get(self.url)
            if response.status_code != 200:
                logger.warning(f"Marketplace returned HTTP {response.status_code}")
                return []
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Failed loading marketplace data: {e}")
            return []
        finally:
            if self.client is None:
                http.close()

        if not isinstance(data, list):
            return []
        self.cache_file.parent.mkdir(parents=True, exist_ok=True)
        self.cache_file.write_text(json.dumps(data), encoding="utf-8")
        return data
