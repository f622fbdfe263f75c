"""Balance engine: derives balances from the journal on demand.

Nothing here is stored. `BalanceEngine` is a read-only view built from the
current chart and journal for one query and then discarded, so balances
always follow the records as they are now, including entries added, edited
or deleted for earlier dates.

Sign conventions:

- day book (cash) balance: money in hand is positive and reported as
  credit, a shortfall is negative and reported as debit;
- account balance: credit is positive, debit is negative.

Every posting is normalized to these signed amounts:

| posting                      | day book      | account         |
|------------------------------|---------------|-----------------|
| income entry                 | +amount       | debit account   |
| expenditure                  | -amount       | credit account  |
| voucher line, cash account   | debit +, credit - | line side   |
| voucher line, other account  | (none)        | line side       |
"""

import logging
from bisect import bisect_left, bisect_right
from collections import UserDict
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Iterator

from .base import Amount, Side
from .chart import Chart
from .entry import Balance, Expenditure, IncomeEntry, JournalEntry, VoucherType
from .journal import Journal

logger = logging.getLogger(__name__)


@dataclass
class Movement:
    """Cash moved on a day, `amount` is positive for money in."""

    date: date
    amount: Amount
    account_id: str
    narration: str
    source_id: str
    voucher_number: int | None = None

    @property
    def is_income(self) -> bool:
        return self.amount > 0


@dataclass
class AccountPosting:
    """One posting against an account, `signed` is positive for credit."""

    date: date
    side: Side
    amount: Amount
    narration: str
    source_id: str
    voucher_number: int | None = None
    voucher_type: VoucherType | None = None

    @property
    def signed(self) -> Amount:
        return self.side.sign(self.amount)

    @property
    def sort_key(self):
        # vouchers by number first, simple postings after them in entry order
        return (self.date, self.voucher_number is None, self.voucher_number or 0)


class DayBuckets(UserDict[date, Amount]):
    """Amounts summed per day with ordered access to the days."""

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[date, Amount]]) -> "DayBuckets":
        buckets = cls()
        for day, amount in pairs:
            buckets.data[day] = buckets.data.get(day, Decimal(0)) + amount
        return buckets

    @property
    def days(self) -> list[date]:
        return sorted(self.data)

    def total(self, day: date) -> Amount:
        return self.data.get(day, Decimal(0))


def cash_movements(chart: Chart, journal: Journal) -> Iterator[Movement]:
    """Yield cash movements of simple postings and of voucher lines on cash accounts.

    Postings against accounts that are no longer in the chart are skipped.
    """
    known = chart.account_ids
    for entry in journal.simple_postings:
        if entry.account_id not in known:
            continue
        amount = entry.amount if isinstance(entry, IncomeEntry) else -entry.amount
        yield Movement(entry.date, amount, entry.account_id, entry.remarks, entry.id)
    cash = chart.cash_account_ids
    for voucher in journal.vouchers:
        for line in voucher.lines:
            if line.account_id in cash:
                amount = line.amount if line.side == Side.Debit else -line.amount
                yield Movement(
                    voucher.date,
                    amount,
                    line.account_id,
                    voucher.narration,
                    voucher.id,
                    voucher.voucher_number,
                )


def voucher_postings(voucher: JournalEntry, account_id: str) -> Iterator[AccountPosting]:
    for line in voucher.lines_for(account_id):
        yield AccountPosting(
            voucher.date,
            line.side,
            line.amount,
            voucher.narration,
            voucher.id,
            voucher.voucher_number,
            voucher.voucher_type,
        )


def simple_posting(entry: IncomeEntry | Expenditure) -> AccountPosting:
    # income moves cash up, the account stands on the other side of the pair
    side = Side.Debit if isinstance(entry, IncomeEntry) else Side.Credit
    return AccountPosting(entry.date, side, entry.amount, entry.remarks, entry.id)


@dataclass
class DaySummary:
    date: date
    opening: Balance
    income: Amount
    expenditure: Amount

    @property
    def closing(self) -> Balance:
        return Balance.from_signed(self.opening.signed + self.income - self.expenditure)


class BalanceEngine:
    def __init__(self, chart: Chart, journal: Journal):
        self.chart = chart
        self.journal = journal
        self.movements = list(cash_movements(chart, journal))
        self.inflow = DayBuckets.from_pairs(
            (m.date, m.amount) for m in self.movements if m.amount > 0
        )
        self.outflow = DayBuckets.from_pairs(
            (m.date, -m.amount) for m in self.movements if m.amount < 0
        )
        self.net = DayBuckets.from_pairs((m.date, m.amount) for m in self.movements)
        self.overrides = {o.date: o.balance for o in journal.overrides}
        self._override_days = sorted(self.overrides)
        self._days = self.net.days

    # Day book balance

    def anchor_before(self, day: date) -> tuple[date, Amount] | None:
        """Nearest declared opening balance strictly before `day`."""
        i = bisect_left(self._override_days, day)
        if i == 0:
            return None
        anchor_day = self._override_days[i - 1]
        return anchor_day, self.overrides[anchor_day].signed

    def replay(self, start: date, stop: date, running: Amount) -> Amount:
        """Apply net cash of days in [start, stop) to `running`.

        A declared opening balance met after `start` replaces the running value.
        """
        days = self._days[bisect_left(self._days, start) : bisect_left(self._days, stop)]
        resets = self._override_days[
            bisect_right(self._override_days, start) : bisect_left(self._override_days, stop)
        ]
        if resets:
            days = sorted(set(days).union(resets))
        for day in days:
            if day != start and day in self.overrides:
                logger.debug("Opening balance on %s reset to declared value", day)
                running = self.overrides[day].signed
            running += self.net.total(day)
        return running

    def opening_balance(self, day: date) -> Balance:
        """Balance in force at the start of `day`."""
        if day in self.overrides:
            return self.overrides[day]
        if anchor := self.anchor_before(day):
            start, running = anchor
        else:
            if not self._days or self._days[0] >= day:
                return Balance.zero()
            start, running = self._days[0], Decimal(0)
        return Balance.from_signed(self.replay(start, day, running))

    def closing_balance(self, day: date) -> Balance:
        return Balance.from_signed(self.opening_balance(day).signed + self.net.total(day))

    def daily_balances(self, start: date, end: date) -> list[DaySummary]:
        """Opening, income, expenditure and closing for every day of [start, end]."""
        result = []
        opening = self.opening_balance(start)
        day = start
        while day <= end:
            if day in self.overrides:
                opening = self.overrides[day]
            summary = DaySummary(day, opening, self.inflow.total(day), self.outflow.total(day))
            result.append(summary)
            opening = summary.closing
            day += timedelta(days=1)
        return result

    # Account balances

    def account_postings(self, account_id: str) -> list[AccountPosting]:
        postings = [
            posting
            for voucher in self.journal.vouchers
            for posting in voucher_postings(voucher, account_id)
        ]
        postings.extend(
            simple_posting(entry)
            for entry in self.journal.simple_postings
            if entry.account_id == account_id
        )
        return sorted(postings, key=lambda p: p.sort_key)

    def signed_balances(self) -> dict[str, Amount]:
        """Fixed opening balance plus every voucher line, for each account."""
        balances = {a.id: a.signed_opening for a in self.chart.accounts}
        for voucher in self.journal.vouchers:
            for line in voucher.lines:
                if line.account_id in balances:
                    balances[line.account_id] += line.signed
        return balances
