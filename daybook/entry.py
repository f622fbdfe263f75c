"""Dated monetary events.

Two kinds of postings are stored side by side:

- simple postings (`IncomeEntry`, `Expenditure`) move one account against
  cash implicitly,
- vouchers (`JournalEntry`) hold balanced debit and credit lines.

`Draft` is the user interface for building a voucher before it goes
through `daybook.validator`.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .base import Amount, DaybookError, Numeric, Side, new_id, to_amount


class Balance(BaseModel):
    """Unsigned amount with the side it stands on."""

    model_config = ConfigDict(frozen=True)

    amount: Amount = Decimal(0)
    type: Side = Side.Credit

    @field_validator("amount", mode="before")
    @classmethod
    def _quantize(cls, value):
        return to_amount(value)

    @classmethod
    def zero(cls) -> "Balance":
        return cls()

    @classmethod
    def from_signed(cls, value: Numeric) -> "Balance":
        """Make balance from signed amount, credit is positive."""
        value = to_amount(value)
        return cls(amount=abs(value), type=Side.Credit if value >= 0 else Side.Debit)

    @property
    def signed(self) -> Amount:
        return self.type.sign(self.amount)


def _positive(value) -> Amount:
    amount = to_amount(value)
    if amount <= 0:
        raise ValueError("Amount must be positive.")
    return amount


class SimplePosting(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id)
    date: date
    account_id: str
    amount: Amount
    remarks: str = ""
    fee_payment_id: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, value):
        return _positive(value)


class IncomeEntry(SimplePosting):
    """Money received, moves cash up."""

    tag: Literal["income"] = "income"


class Expenditure(SimplePosting):
    """Money paid out, moves cash down."""

    tag: Literal["expenditure"] = "expenditure"


class VoucherType(str, Enum):
    Payment = "Payment"
    Receipt = "Receipt"
    Journal = "Journal"
    Contra = "Contra"


class VoucherLine(BaseModel):
    model_config = ConfigDict(extra="forbid")

    account_id: str
    side: Side
    amount: Amount

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, value):
        return _positive(value)

    @property
    def signed(self) -> Amount:
        return self.side.sign(self.amount)


class JournalEntry(BaseModel):
    """A posted voucher."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id)
    date: date
    voucher_type: VoucherType
    voucher_number: int
    narration: str = ""
    lines: list[VoucherLine]
    fee_payment_id: str | None = None

    def total(self, side: Side) -> Amount:
        return sum((line.amount for line in self.lines if line.side == side), Decimal(0))

    def is_balanced(self) -> bool:
        return self.total(Side.Debit) == self.total(Side.Credit)

    def lines_for(self, account_id: str) -> list[VoucherLine]:
        return [line for line in self.lines if line.account_id == account_id]


class OpeningBalanceOverride(BaseModel):
    """Trusted opening balance of the day book on a given date."""

    model_config = ConfigDict(extra="forbid")

    date: date
    amount: Amount
    type: Side = Side.Credit

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, value):
        amount = to_amount(value)
        if amount < 0:
            raise ValueError("Opening balance cannot be negative.")
        return amount

    @property
    def balance(self) -> Balance:
        return Balance(amount=self.amount, type=self.type)


@dataclass
class DraftLine:
    """Voucher line as entered, either debit or credit is expected to be set."""

    account_id: str | None
    debit: Numeric | None = None
    credit: Numeric | None = None


@dataclass
class Draft:
    voucher_type: VoucherType
    date: date
    narration: str = ""
    lines: list[DraftLine] = field(default_factory=list)
    _amount: Amount | None = None

    def amount(self, amount: Numeric):
        """Set default amount for the following lines."""
        self._amount = to_amount(amount)
        return self

    def _get_amount(self, amount: Numeric | None = None) -> Amount:
        if amount is None:
            if self._amount:
                return self._amount
            raise DaybookError("Amount is not set.")
        return to_amount(amount)

    def debit(self, account_id: str, amount: Numeric | None = None):
        self.lines.append(DraftLine(account_id, debit=self._get_amount(amount)))
        return self

    def credit(self, account_id: str, amount: Numeric | None = None):
        self.lines.append(DraftLine(account_id, credit=self._get_amount(amount)))
        return self

    def double(self, debit: str, credit: str, amount: Numeric):
        return self.debit(debit, amount).credit(credit, amount)
