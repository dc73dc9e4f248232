"""
Phase settlement.

Two modes, never conflated:

  final        - winning number known.  Payout is the positive stakes on that
                 number times the fixed odds.  The record is stored and the
                 phase is settled for good.
  provisional  - no draw yet.  Payout is estimated as a flat share of gross
                 stakes.  Informational only: nothing is stored and the
                 phase stays active, so it can be re-run at will.

Corrections (negative entries) never count towards ``total_in``; the winning
side's payout also ignores them.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping, Optional, Union

from numbers_book.core.book_config import BookConfig
from numbers_book.core.errors import AlreadySettled, InvalidEntry
from numbers_book.core.records import LedgerEntry, StakeEntry, is_grid_number, utcnow
from numbers_book.schemas import CloseRequest
from numbers_book.services.phase_book import PhaseBook

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerSummary:
    total_in: int
    total_out: int
    total_profit: int
    phases_count: int


def compute_settlement(
    phase_id: str,
    entries: Iterable[StakeEntry],
    winning_number: Optional[str] = None,
    config: Optional[BookConfig] = None,
    now: Optional[datetime] = None,
) -> LedgerEntry:
    """
    Build the closing record for a log.  Pure; does not settle anything.

    With ``winning_number`` the record is final; without it the record is a
    provisional estimate with ``final=False``.
    """
    config = config or BookConfig()
    if winning_number is not None and not is_grid_number(winning_number):
        raise InvalidEntry(f"Winning number {winning_number!r} must be 3 digits")

    total_in = 0
    winning_stakes = 0
    for entry in entries:
        if entry.amount <= 0:
            continue
        total_in += entry.amount
        if entry.number == winning_number:
            winning_stakes += entry.amount

    if winning_number is not None:
        total_out = winning_stakes * config.payout_multiplier
        final = True
    else:
        estimate = Decimal(total_in) * Decimal(str(config.house_margin_estimate))
        total_out = int(estimate.quantize(Decimal(1), rounding=ROUND_HALF_UP))
        final = False

    return LedgerEntry(
        phase_id=phase_id,
        winning_number=winning_number,
        total_in=total_in,
        total_out=total_out,
        profit=total_in - total_out,
        final=final,
        closed_at=now or utcnow(),
    )


def close(book: PhaseBook, winning_number: Optional[str] = None) -> LedgerEntry:
    """
    Close ``book``'s phase.

    A final close stores the record and settles the phase.  A provisional
    close only returns a fresh estimate.  Either mode raises
    ``AlreadySettled`` once the phase has its final record, without creating
    a second one.
    """
    with book.locked():
        phase = book.phase
        if not phase.is_active:
            logger.warning("Close rejected: phase %s already settled", phase.id)
            raise AlreadySettled(phase.id)

        record = compute_settlement(phase.id, book.entries, winning_number, book.config)
        if not record.final:
            logger.info(
                "Provisional estimate for phase %s: in %d, est. out %d, est. profit %d",
                phase.id,
                record.total_in,
                record.total_out,
                record.profit,
            )
            return record

        book.record_settlement(record)

    logger.info(
        "Settled phase %s on %s: in %d, out %d, profit %d",
        phase.id,
        winning_number,
        record.total_in,
        record.total_out,
        record.profit,
    )
    return record


def close_request(book: PhaseBook, request: Union[CloseRequest, Mapping]) -> LedgerEntry:
    """Validate a close payload (``winningNumber`` optional) and close ``book``."""
    if not isinstance(request, CloseRequest):
        request = CloseRequest.model_validate(request)
    return close(book, request.winning_number)


def summarize_ledger(records: Iterable[LedgerEntry]) -> LedgerSummary:
    """Totals across final ledger records; provisional estimates are ignored."""
    total_in = total_out = profit = count = 0
    for record in records:
        if not record.final:
            continue
        total_in += record.total_in
        total_out += record.total_out
        profit += record.profit
        count += 1
    return LedgerSummary(total_in=total_in, total_out=total_out, total_profit=profit, phases_count=count)
