from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, func, select

from app.core.config import settings
from app.db.core import get_session
from app.db.schema import LedgerState

router = APIRouter()


@router.get("/", status_code=status.HTTP_200_OK)
def index():
    return {"status": "API is running"}


@router.get("/readiness", status_code=status.HTTP_200_OK)
def readiness_check(session: Session = Depends(get_session)):
    """The ledger table must be reachable, not just the database server."""
    try:
        records = session.exec(select(func.count()).select_from(LedgerState)).one()
    except SQLAlchemyError:
        logger.exception("Ledger readiness check failed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Ledger store not ready"
        )

    return {
        "status": "ready",
        "database": "online",
        "ledger": settings.app_name,
        "records": records,
    }
