"""
Authoritative in-memory state of a betting phase.

A :class:`PhaseBook` owns one phase's entry log, limit policy, counters and
final ledger record behind a single re-entrant lock.  Every mutating
operation (bulk submit, reduction, void, amount edit, limit change, excess
clearing, close) runs as one read-modify-write under that lock:

    1. Check the phase is still active (``PhaseSettled`` otherwise).
    2. Build the new log and counters without touching current state.
    3. Write them through the optional :class:`BookStore`.
    4. Swap them in.

A failure at any step leaves the book unchanged, and a reader never sees half
of a batch.  Different phases have different locks and never block each
other; :class:`PhaseRegistry` only locks its id → book map.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from numbers_book.core.book_config import BookConfig
from numbers_book.core.errors import EntryNotFound, InvalidEntry, PhaseNotFound, PhaseSettled
from numbers_book.core.limits import LimitPolicy
from numbers_book.core.notation import ParsedToken, parse_notation, tokens_from_recognized
from numbers_book.core.records import (
    ROLE_COLLECTOR,
    ExposureRow,
    LedgerEntry,
    Phase,
    PhaseState,
    StakeEntry,
    new_id,
    utcnow,
)
from numbers_book.core.store_interface import BookStore
from numbers_book.schemas import LimitUpdate, RecognizedBet
from numbers_book.services.exposure import phase_totals, recompute

logger = logging.getLogger(__name__)

StakeItem = Union[ParsedToken, Tuple[str, int]]


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BookSnapshot:
    """A consistent copy of a phase's state at one point in the commit order."""

    phase: Phase
    entries: Tuple[StakeEntry, ...]
    limits: LimitPolicy
    ledger: Optional[LedgerEntry] = None


def _item_fields(item: StakeItem) -> Tuple[str, int]:
    if isinstance(item, tuple):
        number, amount = item
        return number, amount
    return item.number, item.amount


# ---------------------------------------------------------------------------
# Phase book
# ---------------------------------------------------------------------------

class PhaseBook:
    """Serialises every mutation of one phase and keeps its counters exact."""

    def __init__(
        self,
        phase: Phase,
        limits: Optional[LimitPolicy] = None,
        entries: Iterable[StakeEntry] = (),
        ledger: Optional[LedgerEntry] = None,
        config: Optional[BookConfig] = None,
        store: Optional[BookStore] = None,
    ):
        if store is not None and not isinstance(store, BookStore):
            raise TypeError(f"store must be a BookStore, got {type(store).__name__}")
        self.config = config or BookConfig()
        self.store = store
        self._lock = threading.RLock()
        self._phase = phase
        self._entries: Tuple[StakeEntry, ...] = tuple(entries)
        self._limits = (
            limits.copy() if limits is not None else LimitPolicy(self.config.default_global_limit)
        )
        self._ledger = ledger

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def phase_id(self) -> str:
        return self._phase.id

    @property
    def entries(self) -> Tuple[StakeEntry, ...]:
        return self._entries

    @property
    def limits(self) -> LimitPolicy:
        """A copy of the limit policy; change limits through the book."""
        with self._lock:
            return self._limits.copy()

    @property
    def ledger(self) -> Optional[LedgerEntry]:
        return self._ledger

    def snapshot(self) -> BookSnapshot:
        with self._lock:
            return BookSnapshot(self._phase, self._entries, self._limits.copy(), self._ledger)

    def exposure(self) -> List[ExposureRow]:
        """The 1000-row grid for the log as committed right now."""
        with self._lock:
            entries, limits = self._entries, self._limits.copy()
        return recompute(entries, limits)

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    @contextmanager
    def locked(self) -> Iterator["PhaseBook"]:
        """Hold the phase lock without checking state (for readers and close)."""
        with self._lock:
            yield self

    @contextmanager
    def transaction(self, action: str = "modify") -> Iterator["PhaseBook"]:
        """Hold the phase lock for a read-modify-write on an active phase."""
        with self._lock:
            if not self._phase.is_active:
                logger.warning("Rejected %s on settled phase %s", action, self._phase.id)
                raise PhaseSettled(self._phase.id, action)
            yield self

    # ------------------------------------------------------------------
    # Commit helpers (caller holds the lock)
    # ------------------------------------------------------------------

    def _with_counters(self, added: Sequence[StakeEntry], removed: Sequence[StakeEntry]) -> Phase:
        add_bets, add_volume = phase_totals(added)
        rm_bets, rm_volume = phase_totals(removed)
        return replace(
            self._phase,
            total_bets=self._phase.total_bets + add_bets - rm_bets,
            total_volume=self._phase.total_volume + add_volume - rm_volume,
        )

    def _find(self, entry_id: str) -> Tuple[int, StakeEntry]:
        for index, entry in enumerate(self._entries):
            if entry.id == entry_id:
                return index, entry
        raise EntryNotFound(f"Entry {entry_id} not found in phase {self._phase.id}")

    def append_batch(self, entries: Sequence[StakeEntry]) -> Phase:
        """Append entries atomically and return the updated phase.

        Used by bulk submission and by the excess resolver.  Every entry must
        belong to this phase.
        """
        with self.transaction("append entries"):
            for entry in entries:
                if entry.phase_id != self._phase.id:
                    raise InvalidEntry(
                        f"Entry {entry.id} belongs to phase {entry.phase_id}, not {self._phase.id}"
                    )
            if not entries:
                return self._phase
            new_phase = self._with_counters(entries, ())
            if self.store is not None:
                self.store.append_entries(new_phase, entries)
            self._entries = self._entries + tuple(entries)
            self._phase = new_phase
            return new_phase

    # ------------------------------------------------------------------
    # Entry operations
    # ------------------------------------------------------------------

    def submit(
        self,
        items: Iterable[StakeItem],
        user_id: str,
        role: str = ROLE_COLLECTOR,
    ) -> List[StakeEntry]:
        """
        Bulk-submit tokens or ``(number, amount)`` pairs as one batch.

        Either every item becomes an entry or none does; an invalid item
        raises ``InvalidEntry`` before anything is written.
        """
        with self.transaction("submit"):
            batch_id = new_id()
            now = utcnow()
            entries = []
            for item in items:
                number, amount = _item_fields(item)
                entries.append(
                    StakeEntry(
                        phase_id=self._phase.id,
                        user_id=user_id,
                        user_role=role,
                        number=number,
                        amount=amount,
                        timestamp=now,
                        batch_id=batch_id,
                    )
                )
            if not entries:
                return []
            phase = self.append_batch(entries)

        logger.info(
            "Submitted %d entries (%d) to phase %s by %s; volume now %d",
            len(entries),
            sum(e.amount for e in entries),
            phase.id,
            user_id,
            phase.total_volume,
        )
        return entries

    def submit_text(self, text: str, user_id: str, role: str = ROLE_COLLECTOR) -> List[StakeEntry]:
        """Parse slip notation and submit the result.  Nothing parsed → ``[]``."""
        with self.transaction("submit"):
            tokens = parse_notation(text)
            if not tokens:
                logger.info("Nothing parsed from slip for phase %s", self._phase.id)
                return []
            return self.submit(tokens, user_id, role)

    def submit_recognized(
        self,
        items: Iterable[Union[RecognizedBet, Mapping]],
        user_id: str,
        role: str = ROLE_COLLECTOR,
    ) -> List[StakeEntry]:
        """Validate and submit bets extracted by the recognition service."""
        bets = [
            item if isinstance(item, RecognizedBet) else RecognizedBet.model_validate(item)
            for item in items
        ]
        return self.submit(tokens_from_recognized(bets), user_id, role)

    def apply_reduction(
        self,
        number: str,
        amount: int,
        user_id: str,
        role: str = ROLE_COLLECTOR,
    ) -> StakeEntry:
        """Book a manual correction of ``abs(amount)`` against one number."""
        if amount == 0:
            raise InvalidEntry(f"Reduction for {number} must be nonzero")
        (entry,) = self.submit([(number, -abs(amount))], user_id, role)
        return entry

    def void(self, entry_id: str) -> StakeEntry:
        """Delete an entry; counters move back by exactly its contribution."""
        with self.transaction("void"):
            index, entry = self._find(entry_id)
            new_phase = self._with_counters((), (entry,))
            if self.store is not None:
                self.store.delete_entry(new_phase, entry_id)
            self._entries = self._entries[:index] + self._entries[index + 1:]
            self._phase = new_phase

        logger.info("Voided entry %s (%s:%d) in phase %s", entry_id, entry.number, entry.amount, new_phase.id)
        return entry

    def edit_amount(self, entry_id: str, amount: int) -> StakeEntry:
        """Replace an entry's amount in place, keeping its id and position."""
        with self.transaction("edit"):
            index, old = self._find(entry_id)
            updated = replace(old, amount=amount)
            new_phase = self._with_counters((updated,), (old,))
            if self.store is not None:
                self.store.update_entry_amount(new_phase, entry_id, amount)
            self._entries = self._entries[:index] + (updated,) + self._entries[index + 1:]
            self._phase = new_phase

        logger.info("Edited entry %s: %d -> %d", entry_id, old.amount, amount)
        return updated

    # ------------------------------------------------------------------
    # Limits
    # ------------------------------------------------------------------

    def _change_limits(self, action: str, change) -> LimitPolicy:
        with self.transaction(action):
            limits = self._limits.copy()
            change(limits)
            if self.store is not None:
                self.store.save_limits(self._phase.id, limits)
            self._limits = limits
            return limits.copy()

    def set_global_limit(self, value: int) -> LimitPolicy:
        return self._change_limits("set global limit", lambda p: p.set_global(value))

    def set_limit_override(self, number: str, value: int) -> LimitPolicy:
        return self._change_limits("set limit", lambda p: p.set_override(number, value))

    def set_limit_overrides(self, limits: Mapping[str, int]) -> LimitPolicy:
        return self._change_limits("set limits", lambda p: p.set_overrides(limits))

    def remove_limit_override(self, number: str) -> LimitPolicy:
        return self._change_limits("remove limit", lambda p: p.remove_override(number))

    def apply_limit_update(self, update: Union[LimitUpdate, Mapping]) -> LimitPolicy:
        """Apply a brake change from the calling layer; no ``number`` = global."""
        if not isinstance(update, LimitUpdate):
            update = LimitUpdate.model_validate(update)
        if update.number is None:
            return self.set_global_limit(update.max_amount)
        return self.set_limit_override(update.number, update.max_amount)

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def record_settlement(self, record: LedgerEntry) -> Phase:
        """Store the final ledger record and settle the phase, exactly once."""
        with self.transaction("settle"):
            if not record.final:
                raise ValueError("Only a final settlement can be recorded against a phase")
            settled = replace(self._phase, state=PhaseState.SETTLED, closed_at=record.closed_at)
            if self.store is not None:
                self.store.append_ledger(settled, record)
            self._ledger = record
            self._phase = settled
            return settled


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class PhaseRegistry:
    """Creates and looks up phase books.  Phases never share a lock."""

    def __init__(self, config: Optional[BookConfig] = None, store: Optional[BookStore] = None):
        self.config = config or BookConfig()
        self.store = store
        self._books: Dict[str, PhaseBook] = {}
        self._lock = threading.Lock()

    def open_phase(self, name: str, global_limit: Optional[int] = None) -> PhaseBook:
        """Create a new active phase with its own limit policy."""
        phase = Phase(name=name)
        limits = LimitPolicy(
            self.config.default_global_limit if global_limit is None else global_limit
        )
        if self.store is not None:
            self.store.save_phase(phase)
            self.store.save_limits(phase.id, limits)
        book = PhaseBook(phase, limits=limits, config=self.config, store=self.store)
        with self._lock:
            self._books[phase.id] = book
        logger.info("Opened phase %s (%s), global limit %d", phase.id, name, limits.global_limit)
        return book

    def get(self, phase_id: str) -> PhaseBook:
        with self._lock:
            book = self._books.get(phase_id)
        if book is None:
            raise PhaseNotFound(f"Phase {phase_id} is not open in this registry")
        return book

    def restore(self, phase_id: str) -> PhaseBook:
        """
        Load a book from the store.

        A phase already held by this registry is returned as is: one phase
        id never maps to two books (and two locks).
        """
        with self._lock:
            book = self._books.get(phase_id)
        if book is not None:
            logger.debug("Phase %s already open; restore returns the live book", phase_id)
            return book
        if self.store is None:
            raise PhaseNotFound(f"No store configured; cannot restore phase {phase_id}")

        stored = self.store.load_phase(phase_id)
        candidate = PhaseBook(
            stored.phase,
            limits=stored.limits,
            entries=stored.entries,
            ledger=stored.ledger,
            config=self.config,
            store=self.store,
        )
        with self._lock:
            book = self._books.setdefault(phase_id, candidate)
        if book is candidate:
            logger.info("Restored phase %s with %d entries", phase_id, len(stored.entries))
        return book

    def phases(self) -> List[Phase]:
        """Every known phase, newest first."""
        with self._lock:
            books = list(self._books.values())
        return sorted((b.phase for b in books), key=lambda p: p.created_at, reverse=True)
