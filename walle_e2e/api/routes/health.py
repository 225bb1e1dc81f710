"""
Health check endpoints.
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from walle_e2e import __version__
from walle_e2e.config import get_settings
from walle_e2e.core.errors import LedgerError
from walle_e2e.data.ledger import ResourceLedger

router = APIRouter()


@router.get("")
async def health_check():
    """
    Basic health check endpoint.
    """
    settings = get_settings()
    return {
        "status": "healthy",
        "version": __version__,
        "environment": settings.app_env,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness check - verifies flows have what they need to run.

    The auth state is reported but not required: anonymous flows run without it.
    """
    settings = get_settings()
    try:
        ResourceLedger(settings.ledger_path, lock_timeout=2).used()
        ledger_readable = True
    except LedgerError:
        ledger_readable = False

    checks = {
        "base_url_configured": bool(settings.base_url),
        "ledger_readable": ledger_readable,
    }

    return {
        "ready": all(checks.values()),
        "checks": checks,
        "auth_state_present": settings.storage_state_path.is_file(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
