"""
Database Configuration
"""
from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Generator
import logging

from gstledger.core.config import settings

logger = logging.getLogger(__name__)

db_url = settings.database_url

engine = create_engine(
    db_url,
    connect_args={"check_same_thread": False} if "sqlite" in db_url else {},
    echo=settings.DEBUG
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.
    Ensures the session is closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session):
    """
    Commit everything done inside the block as one transaction.
    
    Any exception rolls the whole block back and is re-raised, so a
    header is never left without its items, stock movements or GST entry.
    """
    try:
        yield db
        db.commit()
    except Exception:
        logger.warning("Rolling back unit of work", exc_info=True)
        db.rollback()
        raise


def init_db(bind=None):
    """Initialize database tables"""
    from gstledger.models import (  # noqa: F401
        Company, BusinessEntity, Product, StockMovement,
        Invoice, InvoiceItem, InvoicePayment, GSTEntry,
        PurchaseOrder, PurchaseOrderItem, Ledger, LedgerEntry, AuditLog
    )
    Base.metadata.create_all(bind=bind or engine)
