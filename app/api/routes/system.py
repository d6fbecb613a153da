import logging
from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from app.db.session import SessionLocal
from app.core import config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/system", tags=["System"])


@router.get("/health")
def system_health():
    db_ok = True
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        db_ok = False
    finally:
        db.close()

    return {
        "status": "ok" if db_ok else "degraded",
        "database": "connected" if db_ok else "error",
        "stripe": "configured" if config.STRIPE_SECRET_KEY and config.STRIPE_WEBHOOK_SECRET else "not_configured",
        "google_oauth": "configured" if config.GOOGLE_CLIENT_ID and config.GOOGLE_CLIENT_SECRET else "not_configured",
        "api_version": "1.0.0",
        "service": "ResumeCraft API"
    }
