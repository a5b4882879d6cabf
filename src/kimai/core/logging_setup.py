"""Logging configuration shared by the CLI and the API server."""

import logging
from pathlib import Path

from kimai.core.config import ConfigManager

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(config: ConfigManager) -> None:
    """Configure the ``kimai`` logger from the ``logging`` config section.

    Args:
        config: Configuration manager
    """
    level = getattr(logging, str(config.get("logging.level", "INFO")).upper(), logging.INFO)

    root = logging.getLogger("kimai")
    root.setLevel(level)

    if root.handlers:
        return

    handler: logging.Handler
    log_file = config.get("logging.file")
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
    else:
        handler = logging.StreamHandler()

    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
