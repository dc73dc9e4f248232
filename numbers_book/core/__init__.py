"""Core notation, limits and records for the Numbers Book.

This package contains pure building blocks:

- ``notation``    : shorthand betting text → parsed stake tokens
- ``permutations``: unique digit arrangements of a 3-digit number
- ``limits``      : per-phase limit policy (global brake + overrides)
- ``records``     : stake entries, phases, exposure rows, ledger records
- ``errors``      : the exception hierarchy raised by the book
- ``book_config`` : payout odds, margin estimate and default limit
- ``store_interface``: ABC and DTO for the persistence collaborator

Nothing in this package imports from ``numbers_book.services`` or
``numbers_book.models``.  All modules are side-effect-free and unit-testable
in isolation.
"""
