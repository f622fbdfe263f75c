"""Double-entry checks applied before a voucher is admitted to the journal."""

import logging
from decimal import Decimal
from typing import Iterable

from .base import Amount, Side, TooFewLines, Unbalanced, to_amount
from .entry import DraftLine, VoucherLine

logger = logging.getLogger(__name__)

# Amounts are kept in minor units, so totals must match exactly.
TOLERANCE = Decimal(0)


def _usable(line: DraftLine, account_ids: set[str]) -> VoucherLine | None:
    try:
        debit = to_amount(line.debit) if line.debit not in (None, "") else Decimal(0)
        credit = to_amount(line.credit) if line.credit not in (None, "") else Decimal(0)
    except ValueError:
        return None
    if (debit > 0) == (credit > 0):
        return None
    if debit < 0 or credit < 0:
        return None
    if not line.account_id or line.account_id not in account_ids:
        return None
    if debit > 0:
        return VoucherLine(account_id=line.account_id, side=Side.Debit, amount=debit)
    return VoucherLine(account_id=line.account_id, side=Side.Credit, amount=credit)


def totals(lines: Iterable[VoucherLine]) -> tuple[Amount, Amount]:
    """Sum of debits and sum of credits."""
    debit = credit = Decimal(0)
    for line in lines:
        if line.side == Side.Debit:
            debit += line.amount
        else:
            credit += line.amount
    return debit, credit


def validate_lines(lines: Iterable[DraftLine], account_ids: set[str]) -> list[VoucherLine]:
    """Return clean voucher lines or raise `TooFewLines` or `Unbalanced`.

    A line is dropped when it has both or neither of debit and credit,
    an amount that is zero or not a number, or an account that does not resolve.
    """
    lines = list(lines)
    clean = [v for v in (_usable(line, account_ids) for line in lines) if v is not None]
    if len(clean) < len(lines):
        logger.debug("Dropped %d unusable voucher line(s)", len(lines) - len(clean))
    if len(clean) < 2:
        raise TooFewLines(f"At least two lines are required, got {len(clean)}.")
    debit, credit = totals(clean)
    if abs(debit - credit) > TOLERANCE or debit <= 0:
        raise Unbalanced(f"Sum of debits {debit} does not equal sum of credits {credit}.")
    return clean
