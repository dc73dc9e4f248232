"""
SQLAlchemy implementation of the book's persistence collaborator.

Each :class:`SqlBookStore` call runs in its own session and commits or rolls
back as a whole, which is what lets :class:`PhaseBook` treat a store write as
the commit point of a mutation.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional, Sequence

from sqlalchemy.orm import Session, sessionmaker

from numbers_book.core.errors import EntryNotFound, PhaseNotFound
from numbers_book.core.limits import LimitPolicy
from numbers_book.core.records import LedgerEntry, Phase, PhaseState, StakeEntry
from numbers_book.core.store_interface import BookStore, StoredPhase
from numbers_book.models import BetRow, NumberLimitRow, PhaseRow, SessionLocal, SettlementRow

logger = logging.getLogger(__name__)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; stored times are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlBookStore(BookStore):
    """Stores phases, entries, limits and ledger records in SQL tables."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._session_factory = session_factory or SessionLocal

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _phase_row(db: Session, phase_id: str) -> PhaseRow:
        row = db.get(PhaseRow, phase_id)
        if row is None:
            raise PhaseNotFound(f"Phase {phase_id} not found in store")
        return row

    @staticmethod
    def _bet_row(db: Session, entry_id: str) -> BetRow:
        row = db.query(BetRow).filter(BetRow.id == entry_id).first()
        if row is None:
            raise EntryNotFound(f"Entry {entry_id} not found in store")
        return row

    @staticmethod
    def _write_phase(row: PhaseRow, phase: Phase) -> None:
        row.name = phase.name
        row.state = phase.state.value
        row.total_bets = phase.total_bets
        row.total_volume = phase.total_volume
        row.closed_at = phase.closed_at

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save_phase(self, phase: Phase) -> None:
        with self._session() as db:
            row = db.get(PhaseRow, phase.id)
            if row is None:
                row = PhaseRow(id=phase.id, created_at=phase.created_at)
                db.add(row)
            self._write_phase(row, phase)

    def append_entries(self, phase: Phase, entries: Sequence[StakeEntry]) -> None:
        with self._session() as db:
            self._write_phase(self._phase_row(db, phase.id), phase)
            db.add_all(
                BetRow(
                    id=e.id,
                    phase_id=e.phase_id,
                    user_id=e.user_id,
                    user_role=e.user_role,
                    number=e.number,
                    amount=e.amount,
                    timestamp=e.timestamp,
                    batch_id=e.batch_id,
                )
                for e in entries
            )
        logger.debug("Stored %d entries for phase %s", len(entries), phase.id)

    def delete_entry(self, phase: Phase, entry_id: str) -> None:
        with self._session() as db:
            self._write_phase(self._phase_row(db, phase.id), phase)
            db.delete(self._bet_row(db, entry_id))

    def update_entry_amount(self, phase: Phase, entry_id: str, amount: int) -> None:
        with self._session() as db:
            self._write_phase(self._phase_row(db, phase.id), phase)
            self._bet_row(db, entry_id).amount = amount

    def save_limits(self, phase_id: str, limits: LimitPolicy) -> None:
        with self._session() as db:
            row = self._phase_row(db, phase_id)
            row.global_limit = limits.global_limit
            db.query(NumberLimitRow).filter(NumberLimitRow.phase_id == phase_id).delete()
            db.add_all(
                NumberLimitRow(phase_id=phase_id, number=number, max_amount=value)
                for number, value in limits.overrides.items()
            )

    def append_ledger(self, phase: Phase, record: LedgerEntry) -> None:
        with self._session() as db:
            self._write_phase(self._phase_row(db, phase.id), phase)
            db.add(
                SettlementRow(
                    phase_id=record.phase_id,
                    winning_number=record.winning_number,
                    total_in=record.total_in,
                    total_out=record.total_out,
                    profit=record.profit,
                    final=record.final,
                    closed_at=record.closed_at,
                )
            )
        logger.info("Stored settlement for phase %s", phase.id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def load_phase(self, phase_id: str) -> StoredPhase:
        with self._session() as db:
            row = self._phase_row(db, phase_id)
            phase = Phase(
                id=row.id,
                name=row.name,
                state=PhaseState(row.state),
                total_bets=row.total_bets,
                total_volume=row.total_volume,
                created_at=_aware(row.created_at),
                closed_at=_aware(row.closed_at),
            )
            bets = (
                db.query(BetRow)
                .filter(BetRow.phase_id == phase_id)
                .order_by(BetRow.seq)
                .all()
            )
            entries = tuple(
                StakeEntry(
                    id=b.id,
                    phase_id=b.phase_id,
                    user_id=b.user_id,
                    user_role=b.user_role,
                    number=b.number,
                    amount=b.amount,
                    timestamp=_aware(b.timestamp),
                    batch_id=b.batch_id,
                )
                for b in bets
            )
            limits = LimitPolicy(
                row.global_limit,
                {lim.number: lim.max_amount for lim in row.limits},
            )
            ledger = None
            if row.ledger_entry is not None:
                s = row.ledger_entry
                ledger = LedgerEntry(
                    phase_id=s.phase_id,
                    winning_number=s.winning_number,
                    total_in=s.total_in,
                    total_out=s.total_out,
                    profit=s.profit,
                    final=s.final,
                    closed_at=_aware(s.closed_at),
                )
        return StoredPhase(phase=phase, entries=entries, limits=limits, ledger=ledger)
