"""
Per-number exposure for a phase.

Everything here is recomputed from the authoritative entry log on demand:
no incremental counters, so the same entries always give the same rows.
Implements:

    1. The 1000-row exposure grid (``000`` .. ``999``) with resolved limits
       and excess.
    2. Phase counters: gross stake count and signed volume, with the
       ``ADJ`` bucket counted in volume but kept off the grid.
    3. Risk views used by the operator screens: top exposure with potential
       payout, admin/collector split of over-limit numbers, per-user history.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

from numbers_book.core.book_config import DEFAULT_PAYOUT_MULTIPLIER
from numbers_book.core.limits import LimitPolicy
from numbers_book.core.records import (
    ADJUSTMENT_BUCKET,
    GRID_NUMBERS,
    ROLE_ADMIN,
    ExposureRow,
    StakeEntry,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RiskLine:
    """A number ranked by gross stakes, with what it would cost if drawn."""

    number: str
    total: int
    potential_payout: int


@dataclass(frozen=True)
class RoleSplit:
    total: int = 0
    admin: int = 0
    collector: int = 0


@dataclass(frozen=True)
class ExcessLine:
    """An over-limit number with who put the money there."""

    number: str
    total: int
    admin_total: int
    collector_total: int
    limit: int
    excess: int


# ---------------------------------------------------------------------------
# Grid
# ---------------------------------------------------------------------------

def _bucket_totals(entries: Iterable[StakeEntry]) -> Dict[str, int]:
    totals = dict.fromkeys(GRID_NUMBERS, 0)
    for entry in entries:
        if entry.number in totals:
            totals[entry.number] += entry.amount
    return totals


def recompute(entries: Iterable[StakeEntry], limits: LimitPolicy) -> List[ExposureRow]:
    """
    Fold every entry into its number bucket and resolve limits.

    Always returns 1000 rows in ascending number order.  ``ADJ`` entries are
    skipped here; they only affect phase volume.
    """
    totals = _bucket_totals(entries)
    rows = [
        ExposureRow(number=number, total=total, limit=limits.resolve(number))
        for number, total in totals.items()
    ]
    logger.debug(
        "Exposure recomputed: %d over limit, global limit %d",
        sum(1 for r in rows if r.excess > 0),
        limits.global_limit,
    )
    return rows


def phase_totals(entries: Iterable[StakeEntry]) -> Tuple[int, int]:
    """Return ``(total_bets, total_volume)`` for a log.

    ``total_bets`` counts positive entries only; ``total_volume`` is the
    signed sum of every amount.  Corrections lower volume and never count as
    bets.
    """
    total_bets = 0
    total_volume = 0
    for entry in entries:
        total_volume += entry.amount
        if entry.amount > 0:
            total_bets += 1
    return total_bets, total_volume


def adj_total(entries: Iterable[StakeEntry]) -> int:
    """Sum of the adjustment bucket."""
    return sum(e.amount for e in entries if e.number == ADJUSTMENT_BUCKET)


def grid_total(rows: Sequence[ExposureRow]) -> int:
    return sum(r.total for r in rows)


# ---------------------------------------------------------------------------
# Risk views
# ---------------------------------------------------------------------------

def top_exposure(
    entries: Iterable[StakeEntry],
    limit: int = 20,
    payout_multiplier: int = DEFAULT_PAYOUT_MULTIPLIER,
) -> List[RiskLine]:
    """Numbers with the largest gross stakes, ties broken by number."""
    gross: Dict[str, int] = defaultdict(int)
    for entry in entries:
        if entry.amount > 0 and entry.number != ADJUSTMENT_BUCKET:
            gross[entry.number] += entry.amount

    ranked = sorted(gross.items(), key=lambda item: (-item[1], item[0]))[:limit]
    return [
        RiskLine(number=number, total=total, potential_payout=total * payout_multiplier)
        for number, total in ranked
    ]


def role_breakdown(entries: Iterable[StakeEntry]) -> Dict[str, RoleSplit]:
    """Signed totals per number, split between admin and collector entries."""
    acc: Dict[str, List[int]] = defaultdict(lambda: [0, 0, 0])
    for entry in entries:
        if entry.number == ADJUSTMENT_BUCKET:
            continue
        bucket = acc[entry.number]
        bucket[0] += entry.amount
        if entry.user_role == ROLE_ADMIN:
            bucket[1] += entry.amount
        else:
            bucket[2] += entry.amount
    return {number: RoleSplit(*values) for number, values in acc.items()}


def excess_report(entries: Sequence[StakeEntry], limits: LimitPolicy) -> List[ExcessLine]:
    """Over-limit numbers, largest excess first."""
    splits = role_breakdown(entries)
    lines = []
    for row in recompute(entries, limits):
        if row.excess <= 0:
            continue
        split = splits.get(row.number, RoleSplit())
        lines.append(
            ExcessLine(
                number=row.number,
                total=row.total,
                admin_total=split.admin,
                collector_total=split.collector,
                limit=row.limit,
                excess=row.excess,
            )
        )
    lines.sort(key=lambda line: (-line.excess, line.number))
    return lines


def user_history(entries: Iterable[StakeEntry], user_id: str) -> List[StakeEntry]:
    """Entries made by one user, newest first."""
    mine = [e for e in entries if e.user_id == user_id]
    mine.sort(key=lambda e: e.timestamp, reverse=True)
    return mine
