"""
FastAPI Application Factory

Creates the web application serving the LINE webhook, the Pub/Sub push
endpoint, the Gmail OAuth callback and health checks.
"""

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI

from ..core.config import ConfigManager, get_config
from ..core.database import DatabaseManager, get_db_manager
from ..core.logging_config import setup_logging
from ..notifications.service import NotificationService


logger = logging.getLogger(__name__)


def create_app(
    service: Optional[NotificationService] = None,
    config: Optional[ConfigManager] = None,
    db: Optional[DatabaseManager] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        service: Prebuilt NotificationService (built from config when omitted)
        config: Configuration (global config when omitted)
        db: Database manager (built from config when omitted)

    Returns:
        Configured FastAPI app
    """
    from .dependencies import build_notification_service

    if config is None:
        config = get_config()
    if db is None:
        db = get_db_manager()
    if service is None:
        service = build_notification_service(config, db)

    app = FastAPI(
        title="Gmail LINE Bridge",
        description="Relay Gmail notifications to LINE",
        version="1.0.0",
        docs_url=None,
        redoc_url=None,
    )

    # Shared instances for the routers
    app.state.config = config
    app.state.db = db
    app.state.service = service

    # Register routers (imported here to avoid circular imports)
    from .routers import health, line_webhook, oauth, pubsub

    app.include_router(line_webhook.router, tags=["LINE"])
    app.include_router(pubsub.router, tags=["Pub/Sub"])
    app.include_router(oauth.router, tags=["OAuth"])
    app.include_router(health.router, tags=["Health"])

    logger.info("FastAPI application created successfully")

    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None):
    """
    Run the FastAPI server using uvicorn.

    Args:
        host: Host to bind to (config.yaml / default when omitted)
        port: Port to bind to (PORT env / config.yaml / 8080 when omitted)
    """
    config = get_config()
    setup_logging(log_level=config.app.log_level, log_file=config.app.log_file)

    host = host or config.app.host
    port = port or config.app.port

    logger.info(f"Starting web server on {host}:{port}")

    app = create_app(config=config)

    # log_config=None keeps the handlers installed by setup_logging
    uvicorn.run(app, host=host, port=port, log_level=config.app.log_level.lower(), log_config=None)


if __name__ == "__main__":
    run_server()
