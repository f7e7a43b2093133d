"""Admin/demo endpoints (e.g. reset for a fresh demo)."""
import logging

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from marketplace.database import engine
from marketplace.models import Base

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


def reset_database() -> None:
    """Drop and recreate every table."""
    if engine.dialect.name == "postgresql":
        # Terminate other DB connections so we can drop tables without waiting for locks.
        try:
            with engine.connect() as conn:
                conn.execute(text("""
                    SELECT pg_terminate_backend(pid) FROM pg_stat_activity
                    WHERE datname = current_database() AND pid <> pg_backend_pid()
                """))
                conn.commit()
        except SQLAlchemyError as e:
            logger.warning("Could not terminate other connections: %s. Proceeding anyway.", e)
        engine.dispose()

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    logger.info("Database reset: %s tables recreated", len(Base.metadata.sorted_tables))


@router.post("/reset")
def reset_demo():
    """Clear all users, requirements, bids and orders for a fresh demo."""
    reset_database()
    return {"status": "ok", "message": "All data cleared."}
