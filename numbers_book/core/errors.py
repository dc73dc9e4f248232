"""Exceptions raised by the Numbers Book.

Every error here is local and recoverable: the calling layer decides how to
report it.  Nothing is retried automatically, and every check that raises
one of these runs before any write, so a rejected call leaves no partial
state behind.
"""


class BookError(Exception):
    """Base class for every book error."""


class InvalidLimit(BookError):
    """Raised for a non-positive limit value or a malformed number key."""


class InvalidEntry(BookError):
    """Raised when a stake entry would break the number/amount invariants."""


class EntryNotFound(BookError):
    """Raised when a void or edit names an entry the phase does not hold."""


class PhaseSettled(BookError):
    """Raised when a mutating call targets a phase that is already settled."""

    def __init__(self, phase_id: str, action: str = "modify"):
        self.phase_id = phase_id
        self.action = action
        super().__init__(f"Phase {phase_id} is settled; cannot {action}")


class AlreadySettled(PhaseSettled):
    """Raised by any close of a phase that already has its final ledger record."""

    def __init__(self, phase_id: str):
        super().__init__(phase_id, action="close again")


class PhaseNotFound(BookError):
    """Raised when a phase id is unknown to the registry or the store."""
