"""
Database models for the Numbers Book reference store
SQLAlchemy ORM; SQLite by default, any SQLAlchemy URL via DATABASE_URL
"""

from sqlalchemy import (
    create_engine,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from datetime import datetime, timezone
import os
from dotenv import load_dotenv

from numbers_book.core.book_config import DEFAULT_GLOBAL_LIMIT

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./numbers_book.db")

# Engine is lazy: nothing connects until a session is used
engine = create_engine(DATABASE_URL, pool_pre_ping=True, echo=False)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def _utcnow():
    return datetime.now(timezone.utc)


class PhaseRow(Base):
    """One betting round with its running counters"""

    __tablename__ = "game_phases"

    id = Column(String(32), primary_key=True)
    name = Column(String(100), nullable=False)
    state = Column(String(16), nullable=False, default="active", index=True)  # "active" | "settled"

    # Counters maintained with every entry write
    total_bets = Column(Integer, nullable=False, default=0)
    total_volume = Column(Integer, nullable=False, default=0)  # signed, never clamped

    # Global brake; per-number overrides live in number_limits
    global_limit = Column(Integer, nullable=False, default=DEFAULT_GLOBAL_LIMIT)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    closed_at = Column(DateTime(timezone=True))

    bets = relationship("BetRow", back_populates="phase", cascade="all, delete-orphan")
    limits = relationship("NumberLimitRow", back_populates="phase", cascade="all, delete-orphan")
    ledger_entry = relationship("SettlementRow", back_populates="phase", uselist=False)


class BetRow(Base):
    """Stake entries; negative amounts are corrections"""

    __tablename__ = "bets"

    # seq keeps commit order; id is the entry id handed to callers
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(32), unique=True, nullable=False, index=True)
    phase_id = Column(String(32), ForeignKey("game_phases.id"), nullable=False, index=True)

    user_id = Column(String(64), nullable=False, index=True)
    user_role = Column(String(16), nullable=False)
    number = Column(String(3), nullable=False, index=True)  # "000".."999" or "ADJ"
    amount = Column(Integer, nullable=False)
    timestamp = Column(DateTime(timezone=True), default=_utcnow)
    batch_id = Column(String(32), index=True)

    phase = relationship("PhaseRow", back_populates="bets")


class NumberLimitRow(Base):
    """Per-number brake overrides"""

    __tablename__ = "number_limits"

    phase_id = Column(String(32), ForeignKey("game_phases.id"), primary_key=True)
    number = Column(String(3), primary_key=True)
    max_amount = Column(Integer, nullable=False)

    phase = relationship("PhaseRow", back_populates="limits")


class SettlementRow(Base):
    """Final settlement records; at most one per phase"""

    __tablename__ = "settlement_ledger"

    id = Column(Integer, primary_key=True, index=True)
    phase_id = Column(String(32), ForeignKey("game_phases.id"), unique=True, nullable=False)
    winning_number = Column(String(3))
    total_in = Column(Integer, nullable=False)
    total_out = Column(Integer, nullable=False)
    profit = Column(Integer, nullable=False)
    final = Column(Boolean, nullable=False, default=True)
    closed_at = Column(DateTime(timezone=True), default=_utcnow, index=True)

    phase = relationship("PhaseRow", back_populates="ledger_entry")


def init_db(bind=None):
    """Create every table on ``bind`` (the module engine by default)"""
    Base.metadata.create_all(bind=bind or engine)
