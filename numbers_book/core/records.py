"""Plain records exchanged between the book and its callers.

These are data-transfer objects only: the book produces them, the calling
layer persists and renders them.  Every record is frozen so a snapshot handed
to a caller can never drift from the log it was taken from.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Final, Optional

from numbers_book.core.errors import InvalidEntry

# ---------------------------------------------------------------------------
# Number domain
# ---------------------------------------------------------------------------

#: Reserved bucket for manual credits/debits that do not belong to a number.
ADJUSTMENT_BUCKET: Final[str] = "ADJ"

#: Size of the exposure grid (``000`` .. ``999``).
GRID_SIZE: Final[int] = 1000

GRID_NUMBERS: Final[tuple[str, ...]] = tuple(f"{i:03d}" for i in range(GRID_SIZE))

#: ASCII digits only; "123\n" and non-Latin digit scripts never reach the grid.
_GRID_NUMBER_RE = re.compile(r"[0-9]{3}")

ROLE_ADMIN: Final[str] = "ADMIN"
ROLE_COLLECTOR: Final[str] = "COLLECTOR"


def is_grid_number(number: object) -> bool:
    """True for a 3-digit string ``000`` .. ``999``."""
    return isinstance(number, str) and bool(_GRID_NUMBER_RE.fullmatch(number))


def is_entry_number(number: object) -> bool:
    """True for a grid number or the adjustment bucket."""
    return number == ADJUSTMENT_BUCKET or is_grid_number(number)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Entries and phases
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StakeEntry:
    """One signed amount on a number (or the ``ADJ`` bucket) within a phase.

    Positive amounts are stakes or manual credits; negative amounts are
    corrections and reductions.  Zero is never a valid amount.
    """

    phase_id: str
    user_id: str
    number: str
    amount: int
    user_role: str = ROLE_COLLECTOR
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utcnow)
    batch_id: Optional[str] = None

    def __post_init__(self):
        if not is_entry_number(self.number):
            raise InvalidEntry(f"Invalid number {self.number!r}: expected 3 digits or {ADJUSTMENT_BUCKET}")
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise InvalidEntry(f"Amount must be an integer, got {self.amount!r}")
        if self.amount == 0:
            raise InvalidEntry(f"Amount for {self.number} must be nonzero")


class PhaseState(str, Enum):
    ACTIVE = "active"
    SETTLED = "settled"


@dataclass(frozen=True)
class Phase:
    """One betting round.

    ``total_bets`` counts positive entries only; ``total_volume`` is the signed
    sum of every amount, adjustment bucket included.  Neither is ever clamped.
    """

    name: str
    id: str = field(default_factory=new_id)
    state: PhaseState = PhaseState.ACTIVE
    total_bets: int = 0
    total_volume: int = 0
    created_at: datetime = field(default_factory=utcnow)
    closed_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.state is PhaseState.ACTIVE


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExposureRow:
    number: str
    total: int
    limit: int

    @property
    def excess(self) -> int:
        return max(0, self.total - self.limit)


@dataclass(frozen=True)
class ExcessItem:
    number: str
    excess: int


@dataclass(frozen=True)
class CorrectionBatch:
    """Outcome of an excess-clearing pass.

    ``cleared`` is False (and ``entries`` empty) when nothing was over limit;
    that is a normal result, not an error.  The counters are the phase totals
    after the batch was committed.
    """

    phase_id: str
    entries: tuple[StakeEntry, ...] = ()
    total_bets: int = 0
    total_volume: int = 0
    batch_id: Optional[str] = None

    @property
    def cleared(self) -> bool:
        return bool(self.entries)

    @property
    def total_removed(self) -> int:
        return -sum(e.amount for e in self.entries)


@dataclass(frozen=True)
class LedgerEntry:
    """Closing record of a phase.

    ``final`` distinguishes an authoritative settlement (winning number known,
    odds-based payout) from a provisional margin estimate.  Only final records
    are ever stored against a phase.
    """

    phase_id: str
    total_in: int
    total_out: int
    profit: int
    final: bool
    winning_number: Optional[str] = None
    closed_at: datetime = field(default_factory=utcnow)
