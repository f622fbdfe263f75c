from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from uuid import uuid4

Numeric = int | float | str | Decimal
Amount = Decimal

CENT = Decimal("0.01")


def to_amount(value: Numeric) -> Amount:
    """Convert a number to money quantized to minor units (cents).

    Raises `ValueError` for text that is not a number and for NaN or infinity.
    """
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValueError(f"Not an amount: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"Not an amount: {value!r}")
    return amount


def new_id() -> str:
    return uuid4().hex[:12]


class Side(str, Enum):
    """Side of an entry or of a balance."""

    Debit = "debit"
    Credit = "credit"

    def __repr__(self):
        return self.value.capitalize()

    @property
    def opposite(self) -> "Side":
        return Side.Credit if self is Side.Debit else Side.Debit

    def sign(self, amount: Amount) -> Amount:
        """Signed amount, credit is positive and debit is negative."""
        return amount if self is Side.Credit else -amount


class DaybookError(Exception):
    pass


class NotFound(DaybookError):
    """Referenced record does not exist."""


class Unbalanced(DaybookError):
    """Voucher debits do not equal credits or the voucher total is zero."""


class TooFewLines(DaybookError):
    """Voucher has fewer than two usable lines."""


class CategoryInUse(DaybookError):
    """Category is still referenced by an account."""


class Immutable(DaybookError):
    """Mutation attempted on a system-managed category or account."""


class VoucherLinked(DaybookError):
    """Record is linked to a fee payment and cannot be deleted on its own."""


class UnresolvedAccount(DaybookError):
    """Posting references an account that does not exist."""


class IntegrityFault(DaybookError):
    """Trial balance debits and credits differ."""


class PersistenceFailure(DaybookError):
    """Storage call failed, nothing was applied."""


class SaveLoadMixin:
    """A mix-in class for loading and saving pydantic models to files."""

    @classmethod
    def load(cls, filename: str | Path):
        return cls.model_validate_json(Path(filename).read_text())  # type: ignore

    def save(self, filename: str | Path, allow_overwrite: bool = False):
        if not allow_overwrite and Path(filename).exists():
            raise FileExistsError(f"File already exists: {filename}")
        content = self.model_dump_json(indent=2, warnings=False)  # type: ignore
        Path(filename).write_text(content)  # type: ignore
