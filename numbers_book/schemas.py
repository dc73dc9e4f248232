"""
Pydantic intake schemas for the Numbers Book.

The recognition service (photo or voice) hands the book pre-extracted bets,
and the calling layer hands it limit and close requests.  Validating these
with explicit schemas keeps malformed payloads out of the entry log.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from numbers_book.core.records import ADJUSTMENT_BUCKET, is_entry_number, is_grid_number


# ---------------------------------------------------------------------------
# Recognised bets
# ---------------------------------------------------------------------------

class RecognizedBet(BaseModel):
    """
    One bet extracted from an image or a voice note.

    ``is_permutation`` asks the book to stake ``amount`` on every unique
    arrangement of ``number``.  The adjustment bucket can never be a
    permutation bet.
    """

    number: str = Field(..., description='3-digit number or "ADJ"')
    amount: int = Field(..., description="Signed stake; never zero")
    is_permutation: bool = Field(False, alias="isPermutation")

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {"number": "123", "amount": 500, "isPermutation": True}
        },
    }

    @field_validator("number")
    @classmethod
    def validate_number(cls, v: str) -> str:
        v = v.strip().upper()
        if not is_entry_number(v):
            raise ValueError(f"number={v!r} must be 3 digits or {ADJUSTMENT_BUCKET}")
        return v

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: int) -> int:
        if v == 0:
            raise ValueError("amount cannot be 0")
        return v

    @model_validator(mode="after")
    def validate_permutation_target(self) -> "RecognizedBet":
        if self.is_permutation and self.number == ADJUSTMENT_BUCKET:
            raise ValueError(f"{ADJUSTMENT_BUCKET} cannot be a permutation bet")
        return self


# ---------------------------------------------------------------------------
# Limits and closing
# ---------------------------------------------------------------------------

class LimitUpdate(BaseModel):
    """Payload for a brake change.  Omit ``number`` to change the global limit."""

    number: Optional[str] = Field(None, description="3-digit number; None = global")
    max_amount: int = Field(..., gt=0, alias="maxAmount")

    model_config = {"populate_by_name": True}

    @field_validator("number")
    @classmethod
    def validate_number(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not is_grid_number(v):
            raise ValueError(f"number={v!r} must be 3 digits")
        return v


class CloseRequest(BaseModel):
    """Payload for closing a phase.  No winning number = provisional estimate."""

    winning_number: Optional[str] = Field(None, alias="winningNumber")

    model_config = {"populate_by_name": True}

    @field_validator("winning_number")
    @classmethod
    def validate_winning_number(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        if not is_grid_number(v):
            raise ValueError(f"winning_number={v!r} must be 3 digits")
        return v
