"""
Health Check Router

Liveness endpoint for the platform and a detailed component check.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from ...core.database import DatabaseManager
from ...notifications.service import NotificationService
from ..dependencies import get_db, get_notification_service


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_class=PlainTextResponse)
def health_check():
    """Liveness check."""
    return "OK"


@router.get("/health/detailed")
def detailed_health_check(
    db: DatabaseManager = Depends(get_db),
    service: NotificationService = Depends(get_notification_service),
):
    """
    Detailed health check with component status.

    Returns:
        Detailed health status for database, Gmail and LINE
    """
    health = {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "components": {},
    }

    # Check database
    try:
        db.ping()
        health["components"]["database"] = {
            "status": "healthy",
            "message": "Database connection OK",
        }
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        health["components"]["database"] = {
            "status": "unhealthy",
            "message": f"Database error: {str(e)}",
        }
        health["status"] = "degraded"

    # Gmail is optional; without it the bridge only answers "unavailable"
    if service.mailbox is None:
        health["components"]["gmail"] = {
            "status": "disabled",
            "message": "Gmail client not configured",
        }
        health["status"] = "degraded"
    else:
        health["components"]["gmail"] = {
            "status": "healthy",
            "message": "Gmail client configured",
        }

    # Check LINE API
    try:
        service.chat.test_connection()
        health["components"]["line"] = {
            "status": "healthy",
            "message": "LINE API connection OK",
        }
    except Exception as e:
        logger.error(f"LINE API health check failed: {e}")
        health["components"]["line"] = {
            "status": "unhealthy",
            "message": f"LINE API error: {str(e)}",
        }
        health["status"] = "degraded"

    health["pending_auth"] = len(service.pending_auth)

    return health
