"""CLI entry point for running the debug API server."""

from __future__ import annotations

import uvicorn

from savings_agent.core.config import get_settings
from savings_agent.core.logging import setup_logging
from savings_agent.dashboard.server import create_app
from savings_agent.engine import build_engine


if __name__ == "__main__":
    settings = get_settings()
    setup_logging(settings.log_level)
    uvicorn.run(
        create_app(build_engine(settings)),
        host=settings.dashboard_host,
        port=settings.dashboard_port,
        reload=False,
    )
