"""Health check endpoint — verifies backend + database connection."""

from fastapi import APIRouter

from modelshift.core import persistence

router = APIRouter()


@router.get("/health")
async def health_check():
    """Check backend status and connectivity to the database."""
    db_ok = persistence.check_connection()

    return {
        "status": "ok" if db_ok else "degraded",
        "services": {
            "database": "ok" if db_ok else "error",
        }
    }
