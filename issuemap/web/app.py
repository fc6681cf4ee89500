"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from issuemap import __version__
from issuemap.config import IssueMapConfig, load_config
from issuemap.web.api import router


def create_app(config: IssueMapConfig | None = None) -> FastAPI:
    app = FastAPI(title="issuemap", version=__version__)
    app.state.config = config or load_config()
    app.include_router(router)
    return app
