# app/db.py

from contextlib import contextmanager
import logging

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from app.config import settings
from app.errors import TransactionAbortError

logger = logging.getLogger(__name__)

_connect_args = {}
if settings.database_url.startswith("sqlite"):
    # FastAPI serves sync routes from a threadpool
    _connect_args = {"check_same_thread": False}

engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    connect_args=_connect_args,
)

SessionLocal = sessionmaker(bind=engine, autoflush=True, autocommit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session, what: str):
    """
    Run the enclosed writes as one all-or-nothing transaction.

    Commits on exit. Any exception rolls the whole session back; store-level
    conflicts (unique violations, lock / serialization errors) are re-raised
    as TransactionAbortError.
    """
    try:
        yield
        db.commit()
    except (IntegrityError, OperationalError) as exc:
        db.rollback()
        logger.warning("DB: %s rejected by the store | %s", what, exc.__class__.__name__)
        raise TransactionAbortError(f"{what} aborted: the store rejected the write.") from exc
    except Exception:
        db.rollback()
        raise


def expect_rows(result, expected: int, reason: str) -> None:
    """Abort the surrounding transaction unless a conditional write matched `expected` rows."""
    if result.rowcount != expected:
        raise TransactionAbortError(
            f"{reason} (expected {expected} row(s), matched {result.rowcount})."
        )
