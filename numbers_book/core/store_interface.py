"""Contract for the collaborator that durably stores what the book produces.

:class:`~numbers_book.services.phase_book.PhaseBook` accepts an optional
:class:`BookStore` at construction time.  Every committed mutation is written
through it *before* the in-memory state changes, so a store failure leaves the
book exactly as it was.  Each method must be atomic on its own: either all of
its rows land or none do.

Design choices
--------------
* :class:`BookStore` is an ABC rather than a ``typing.Protocol`` so that
  store authors inherit the contract explicitly and the book can reject a
  wrong object at construction time.
* :class:`StoredPhase` is the single DTO returned by :meth:`BookStore.load_phase`
  so a book can be rebuilt after a restart without the store knowing anything
  about locks.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from numbers_book.core.limits import LimitPolicy
from numbers_book.core.records import LedgerEntry, Phase, StakeEntry


@dataclass(frozen=True)
class StoredPhase:
    phase: Phase
    entries: tuple[StakeEntry, ...]
    limits: LimitPolicy
    ledger: Optional[LedgerEntry] = None


class BookStore(ABC):
    """Persistence collaborator for phases, entries, limits and ledger records."""

    @abstractmethod
    def save_phase(self, phase: Phase) -> None:
        """Insert or update the phase row (name, state, counters)."""

    @abstractmethod
    def append_entries(self, phase: Phase, entries: Sequence[StakeEntry]) -> None:
        """Insert ``entries`` and write ``phase``'s updated counters together."""

    @abstractmethod
    def delete_entry(self, phase: Phase, entry_id: str) -> None:
        """Remove one entry and write ``phase``'s updated counters together."""

    @abstractmethod
    def update_entry_amount(self, phase: Phase, entry_id: str, amount: int) -> None:
        """Change one entry's amount and write ``phase``'s updated counters together."""

    @abstractmethod
    def save_limits(self, phase_id: str, limits: LimitPolicy) -> None:
        """Replace the stored limit policy of a phase."""

    @abstractmethod
    def append_ledger(self, phase: Phase, record: LedgerEntry) -> None:
        """Insert the final ledger record and write the settled phase together."""

    @abstractmethod
    def load_phase(self, phase_id: str) -> StoredPhase:
        """Rebuild a phase's full state; raise ``PhaseNotFound`` if unknown."""
