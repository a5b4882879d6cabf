"""FastAPI application factory and the uvicorn runner."""

import logging
import os
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI  # type: ignore[import-untyped]
from fastapi.responses import JSONResponse  # type: ignore[import-untyped]

from kimai import __version__
from kimai.api.middleware import setup_middleware
from kimai.core.config import CONFIG_ENV, ConfigManager
from kimai.core.logging_setup import setup_logging
from kimai.events import create_dispatcher

logger = logging.getLogger(__name__)

# (module, prefix, tag)
ROUTERS = [
    ("system", "/api", "system"),
    ("auth", "/api/auth", "auth"),
    ("timesheets", "/api/timesheets", "timesheets"),
    ("users", "/api/users", "users"),
    ("customers", "/api/customers", "customers"),
    ("projects", "/api/projects", "projects"),
    ("activities", "/api/activities", "activities"),
    ("invoices", "/api/invoices", "invoices"),
    ("quick_entry", "/api/quick-entry", "quick-entry"),
    ("reporting", "/api/reporting", "reporting"),
    ("plugins", "/api/plugins", "plugins"),
    ("ui", "/api/ui", "ui"),
]


def create_app(config: Optional[ConfigManager] = None) -> FastAPI:
    """Build the API application.

    The configuration and the event dispatcher are stored on ``app.state``
    where the request dependencies pick them up.

    Example:
        >>> app = create_app(ConfigManager(Path("/tmp/kimai.yml")))
    """
    from kimai.api import endpoints

    if config is None:
        config = ConfigManager()
    setup_logging(config)

    app = FastAPI(
        title="Kimai API",
        description="Time tracking, invoicing and reporting for teams",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.config = config
    app.state.dispatcher = create_dispatcher()

    setup_middleware(app, config)

    for module, prefix, tag in ROUTERS:
        app.include_router(getattr(endpoints, module).router, prefix=prefix, tags=[tag])

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        return JSONResponse(
            {
                "message": "Kimai API",
                "version": __version__,
                "docs": "/docs",
                "health": "/api/health",
            }
        )

    return app


def run_server(
    config: ConfigManager,
    host: str = "localhost",
    port: int = 8000,
    reload: bool = False,
    workers: int = 1,
    ssl_certfile: Optional[Path] = None,
    ssl_keyfile: Optional[Path] = None,
) -> None:
    """Serve the API with uvicorn until interrupted.

    Workers build their own app through the factory, so the config file
    location is handed over in the environment.
    """
    import uvicorn  # type: ignore[import-untyped]

    os.environ[CONFIG_ENV] = str(config.config_path)

    options: dict[str, Any] = {
        "factory": True,
        "host": host,
        "port": port,
        "reload": reload,
        # uvicorn ignores workers when reloading
        "workers": 1 if reload else workers,
        "log_level": config.get("api.advanced.log_level", "info"),
        "access_log": config.get("api.advanced.access_log", True),
    }
    if ssl_certfile and ssl_keyfile:
        options["ssl_certfile"] = str(ssl_certfile)
        options["ssl_keyfile"] = str(ssl_keyfile)

    logger.info(f"Serving on {host}:{port} with config {config.config_path}")
    uvicorn.run("kimai.api.server:create_app", **options)
