"""
Tests for phase settlement and the ledger summary
Run with: pytest tests/test_settlement.py -v
"""

from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from numbers_book.core.book_config import BookConfig
from numbers_book.core.errors import AlreadySettled, InvalidEntry, PhaseSettled
from numbers_book.core.records import LedgerEntry, PhaseState, StakeEntry
from numbers_book.core.store_interface import BookStore
from numbers_book.services.excess import clear_excess
from numbers_book.services.phase_book import PhaseRegistry
from numbers_book.services.settlement import (
    close,
    close_request,
    compute_settlement,
    summarize_ledger,
)


def _book(store=None):
    return PhaseRegistry(store=store).open_phase("Evening", global_limit=100000)


def _entries(*pairs):
    return [StakeEntry(phase_id="p1", user_id="u1", number=n, amount=a) for n, a in pairs]


class TestComputeSettlement:
    """Pure closing arithmetic"""

    def test_final_payout(self):
        entries = _entries(("123", 5000), ("456", 45000))
        record = compute_settlement("p1", entries, "123")

        assert record.final
        assert record.total_in == 50000
        assert record.total_out == 400000
        assert record.profit == -350000

    def test_corrections_excluded(self):
        entries = _entries(("123", 5000), ("123", -1000), ("ADJ", -300), ("ADJ", 200))
        record = compute_settlement("p1", entries, "123")

        assert record.total_in == 5200
        assert record.total_out == 400000

    def test_no_winners(self):
        record = compute_settlement("p1", _entries(("123", 500)), "999")
        assert record.total_out == 0
        assert record.profit == 500

    @pytest.mark.parametrize("total_in,expected_out", [
        (50000, 36000),
        (1001, 721),
        (0, 0),
    ])
    def test_provisional_estimate(self, total_in, expected_out):
        entries = _entries(("123", total_in)) if total_in else []
        record = compute_settlement("p1", entries)

        assert not record.final
        assert record.winning_number is None
        assert record.total_out == expected_out
        assert record.profit == total_in - expected_out

    def test_custom_odds(self):
        record = compute_settlement("p1", _entries(("123", 10)), "123", config=BookConfig(payout_multiplier=90))
        assert record.total_out == 900

    @pytest.mark.parametrize("bad", ["12", "1234", "abc", "ADJ"])
    def test_malformed_winning_number(self, bad):
        with pytest.raises(InvalidEntry):
            compute_settlement("p1", [], bad)


class TestClose:

    def test_final_close_settles_phase(self):
        book = _book()
        book.submit([("123", 5000), ("456", 45000)], user_id="alice")

        record = close(book, "123")

        assert record.profit == -350000
        assert book.phase.state is PhaseState.SETTLED
        assert book.phase.closed_at == record.closed_at
        assert book.ledger == record

    def test_settled_phase_is_frozen(self):
        book = _book()
        (entry,) = book.submit([("123", 500)], user_id="alice")
        close(book, "123")
        totals = (book.phase.total_bets, book.phase.total_volume)

        with pytest.raises(PhaseSettled):
            book.submit([("456", 10)], user_id="alice")
        with pytest.raises(PhaseSettled):
            book.void(entry.id)
        with pytest.raises(PhaseSettled):
            book.edit_amount(entry.id, 10)
        with pytest.raises(PhaseSettled):
            book.apply_reduction("123", 10, user_id="boss")
        with pytest.raises(PhaseSettled):
            book.set_global_limit(10)
        with pytest.raises(PhaseSettled):
            clear_excess(book, acting_user="boss")

        assert (book.phase.total_bets, book.phase.total_volume) == totals
        assert book.entries == (entry,)

    @pytest.mark.parametrize("winning_number", ["123", None])
    def test_second_close_rejected(self, winning_number):
        book = _book()
        book.submit([("123", 500)], user_id="alice")
        first = close(book, "123")

        with pytest.raises(AlreadySettled):
            close(book, winning_number)
        assert book.ledger == first

    def test_provisional_close_repeatable(self):
        book = _book()
        book.submit([("123", 1000)], user_id="alice")

        first = close(book)
        book.submit([("456", 1000)], user_id="alice")
        second = close(book)

        assert first.total_out == 720
        assert second.total_out == 1440
        assert book.phase.is_active
        assert book.ledger is None

    def test_invalid_winning_number_keeps_phase_open(self):
        book = _book()
        with pytest.raises(InvalidEntry):
            close(book, "12")
        assert book.phase.is_active

    @pytest.mark.parametrize("payload,final", [
        ({"winningNumber": "123"}, True),
        ({"winningNumber": ""}, False),
        ({}, False),
    ])
    def test_close_payload(self, payload, final):
        book = _book()
        book.submit([("123", 500)], user_id="alice")

        record = close_request(book, payload)

        assert record.final is final
        assert book.phase.is_active is not final

    def test_close_payload_validated(self):
        book = _book()
        with pytest.raises(ValidationError):
            close_request(book, {"winningNumber": "12"})
        assert book.phase.is_active

    def test_only_final_record_is_stored(self):
        store = MagicMock(spec=BookStore)
        book = _book(store=store)
        book.submit([("123", 500)], user_id="alice")

        close(book)
        store.append_ledger.assert_not_called()

        record = close(book, "123")
        phase, stored = store.append_ledger.call_args.args
        assert stored == record
        assert phase.state is PhaseState.SETTLED

    def test_failed_ledger_write_keeps_phase_active(self):
        store = MagicMock(spec=BookStore)
        book = _book(store=store)
        store.append_ledger.side_effect = RuntimeError("db down")

        with pytest.raises(RuntimeError):
            close(book, "123")
        assert book.phase.is_active
        assert book.ledger is None


class TestSummarizeLedger:

    def test_sums_final_records_only(self):
        records = [
            LedgerEntry("p1", total_in=1000, total_out=800, profit=200, final=True, winning_number="123"),
            LedgerEntry("p2", total_in=500, total_out=4000, profit=-3500, final=True, winning_number="456"),
            LedgerEntry("p3", total_in=999, total_out=719, profit=280, final=False),
        ]
        summary = summarize_ledger(records)

        assert summary.total_in == 1500
        assert summary.total_out == 4800
        assert summary.total_profit == -3300
        assert summary.phases_count == 2

    def test_empty(self):
        summary = summarize_ledger([])
        assert summary.phases_count == 0
        assert summary.total_profit == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
