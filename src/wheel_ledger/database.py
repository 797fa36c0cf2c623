"""SQLAlchemy models and session management for the event store.

Only cycles and their append-only event log are persisted. Lots,
metrics and phase summaries are always re-derived from the events.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Union

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# SQLAlchemy declarative base for ORM models
Base = declarative_base()

MEMORY_URL = "sqlite:///:memory:"


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite.

    Args:
        dbapi_conn: Database API connection
        connection_record: Connection record
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class WheelCycleRecord(Base):
    """A tracked wheel campaign on one ticker.

    Attributes:
        id: Unique identifier (auto-incrementing integer)
        ticker: Stock ticker symbol (e.g., "AAPL")
        start_date: Date tracking started
        status: "Open" or "Closed"
        end_date: Date the cycle was closed
        notes: Free-text notes
        created_at: Row creation timestamp
        events: Relationship to the cycle's events
    """

    __tablename__ = "wheel_cycles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ticker = Column(String, nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    status = Column(String, nullable=False, default="Open", index=True)
    end_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    events = relationship("WheelEventRecord", back_populates="cycle")

    def __repr__(self) -> str:
        return f"<WheelCycleRecord(id={self.id}, ticker={self.ticker}, status={self.status})>"


class WheelEventRecord(Base):
    """One immutable trade event in a cycle's log.

    Columns not used by an event type are NULL. Per-share prices keep
    four decimal places, fees keep cents.
    """

    __tablename__ = "wheel_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cycle_id = Column(
        Integer,
        ForeignKey("wheel_cycles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event_type = Column(String, nullable=False)
    trade_date = Column(Date, nullable=False, index=True)
    quantity_shares = Column(Integer, nullable=True)
    contracts = Column(Integer, nullable=True)
    price = Column(Numeric(18, 4), nullable=True)
    strike = Column(Numeric(18, 4), nullable=True)
    premium = Column(Numeric(18, 4), nullable=True)
    fees = Column(Numeric(18, 2), nullable=False, default=0)
    expiration = Column(Date, nullable=True)
    link_event_id = Column(Integer, ForeignKey("wheel_events.id"), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    cycle = relationship("WheelCycleRecord", back_populates="events")

    def __repr__(self) -> str:
        return (
            f"<WheelEventRecord(id={self.id}, cycle_id={self.cycle_id}, "
            f"type={self.event_type}, date={self.trade_date})>"
        )


def database_url(db_path: Union[str, Path]) -> str:
    """SQLite URL for a file path; ":memory:" maps to an in-memory database."""
    if str(db_path) == ":memory:":
        return MEMORY_URL
    return f"sqlite:///{Path(db_path).expanduser()}"


def init_engine(db_path: Union[str, Path], echo: bool = False) -> Engine:
    """Create an engine for a SQLite database and ensure its tables exist.

    Creates the database directory if it doesn't exist. In-memory
    databases share one connection so every session sees the same data.

    Args:
        db_path: Database file path, or ":memory:"
        echo: Log SQL statements

    Returns:
        Configured SQLAlchemy engine
    """
    url = database_url(db_path)
    if url == MEMORY_URL:
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )
    else:
        db_dir = Path(db_path).expanduser().parent
        if not db_dir.exists():
            db_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created database directory: {db_dir}")
        engine = create_engine(url, connect_args={"check_same_thread": False}, echo=echo)

    Base.metadata.create_all(bind=engine)
    logger.debug(f"Database engine initialized: {url}")
    return engine


def get_session_factory(engine: Engine) -> sessionmaker:
    """Get a session factory bound to an engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
