"""
Excess clearing: bring every over-limit number back down to its brake.

For each number whose exposure exceeds its resolved limit, one correction
entry of ``-excess`` is synthesised.  The whole set is appended as one batch
under the phase lock, so either every correction lands (and phase volume
drops by exactly the sum of excess) or none does.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from numbers_book.core.records import (
    ROLE_ADMIN,
    CorrectionBatch,
    ExcessItem,
    ExposureRow,
    Phase,
    StakeEntry,
    new_id,
    utcnow,
)
from numbers_book.services.exposure import recompute
from numbers_book.services.phase_book import PhaseBook

logger = logging.getLogger(__name__)


def find_excess(rows: Iterable[ExposureRow]) -> List[ExcessItem]:
    """All rows over their limit, in grid order."""
    return [ExcessItem(number=r.number, excess=r.excess) for r in rows if r.excess > 0]


def build_corrections(
    phase: Phase,
    rows: Iterable[ExposureRow],
    acting_user: str,
    role: str = ROLE_ADMIN,
    now: Optional[datetime] = None,
) -> List[StakeEntry]:
    """One ``-excess`` entry per over-limit row, sharing a batch id.  Pure."""
    items = find_excess(rows)
    if not items:
        return []
    batch_id = new_id()
    timestamp = now or utcnow()
    return [
        StakeEntry(
            phase_id=phase.id,
            user_id=acting_user,
            user_role=role,
            number=item.number,
            amount=-item.excess,
            timestamp=timestamp,
            batch_id=batch_id,
        )
        for item in items
    ]


def clear_excess(book: PhaseBook, acting_user: str, role: str = ROLE_ADMIN) -> CorrectionBatch:
    """
    Clear every over-limit position of ``book``'s phase in one atomic batch.

    Rows are recomputed from the committed log inside the lock, so a
    concurrent submit can never make the corrections stale.  Returns an
    uncleared batch when nothing is over limit.  Raises ``PhaseSettled`` for a
    settled phase before anything is written.
    """
    with book.transaction("clear excess"):
        rows = recompute(book.entries, book.limits)
        corrections = build_corrections(book.phase, rows, acting_user, role)
        if not corrections:
            phase = book.phase
            logger.info("Nothing over limit in phase %s", phase.id)
            return CorrectionBatch(
                phase_id=phase.id,
                total_bets=phase.total_bets,
                total_volume=phase.total_volume,
            )
        phase = book.append_batch(corrections)

    batch = CorrectionBatch(
        phase_id=phase.id,
        entries=tuple(corrections),
        total_bets=phase.total_bets,
        total_volume=phase.total_volume,
        batch_id=corrections[0].batch_id,
    )
    logger.info(
        "Cleared excess on %d numbers in phase %s: removed %d, volume now %d",
        len(corrections),
        phase.id,
        batch.total_removed,
        phase.total_volume,
    )
    return batch
