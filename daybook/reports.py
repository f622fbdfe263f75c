"""Day book, ledger report and trial balance."""

import logging
from collections import UserDict
from datetime import date
from decimal import Decimal

import simplejson as json  # type: ignore
from pydantic import BaseModel

from .base import Amount, IntegrityFault, SaveLoadMixin, Side
from .engine import BalanceEngine
from .entry import Balance, JournalEntry

logger = logging.getLogger(__name__)


class Report(BaseModel, SaveLoadMixin):
    """Base class for reports."""


class BalancesDict(UserDict[str, Decimal], SaveLoadMixin):
    """Account name to signed balance, saved as plain JSON numbers."""

    @property
    def total(self) -> Decimal:
        return Decimal(sum(self.data.values()))

    def model_dump_json(self, indent: int = 2, warnings: bool = False):
        return json.dumps(self.data, indent=indent)

    @classmethod
    def model_validate_json(cls, text: str):
        return cls(json.loads(text, use_decimal=True))


class DayBookRow(BaseModel):
    account_id: str
    account_name: str
    narration: str
    amount: Amount
    voucher_number: int | None = None


class DayBook(Report):
    date: date
    opening: Balance
    income: list[DayBookRow]
    expenditure: list[DayBookRow]
    vouchers: list[JournalEntry]
    total_income: Amount
    total_expenditure: Amount
    closing: Balance

    @classmethod
    def build(cls, engine: BalanceEngine, day: date) -> "DayBook":
        names = {a.id: a.name for a in engine.chart.accounts}
        income, expenditure = [], []
        for m in engine.movements:
            if m.date != day:
                continue
            row = DayBookRow(
                account_id=m.account_id,
                account_name=names.get(m.account_id, ""),
                narration=m.narration,
                amount=abs(m.amount),
                voucher_number=m.voucher_number,
            )
            (income if m.is_income else expenditure).append(row)
        opening = engine.opening_balance(day)
        total_income = sum((r.amount for r in income), Decimal(0))
        total_expenditure = sum((r.amount for r in expenditure), Decimal(0))
        return cls(
            date=day,
            opening=opening,
            income=income,
            expenditure=expenditure,
            vouchers=sorted(
                (v for v in engine.journal.vouchers if v.date == day),
                key=lambda v: v.voucher_number,
                reverse=True,
            ),
            total_income=total_income,
            total_expenditure=total_expenditure,
            closing=Balance.from_signed(opening.signed + total_income - total_expenditure),
        )


class LedgerRow(BaseModel):
    date: date
    narration: str
    debit: Amount
    credit: Amount
    amount: Amount
    balance: Amount
    voucher_number: int | None = None


class LedgerReport(Report):
    account_id: str
    account_name: str
    start: date
    end: date
    opening: Balance
    rows: list[LedgerRow]
    closing: Balance

    @classmethod
    def build(cls, engine: BalanceEngine, account_id: str, start: date, end: date):
        account = engine.chart.account(account_id)
        balance = account.signed_opening
        rows = []
        for posting in engine.account_postings(account_id):
            if not start <= posting.date <= end:
                continue
            balance += posting.signed
            rows.append(
                LedgerRow(
                    date=posting.date,
                    narration=posting.narration,
                    debit=posting.amount if posting.side == Side.Debit else Decimal(0),
                    credit=posting.amount if posting.side == Side.Credit else Decimal(0),
                    amount=posting.signed,
                    balance=balance,
                    voucher_number=posting.voucher_number,
                )
            )
        return cls(
            account_id=account.id,
            account_name=account.name,
            start=start,
            end=end,
            opening=Balance(amount=account.opening_balance, type=account.opening_balance_type),
            rows=rows,
            closing=Balance.from_signed(balance),
        )

    @property
    def total_debit(self) -> Amount:
        return sum((r.debit for r in self.rows), Decimal(0))

    @property
    def total_credit(self) -> Amount:
        return sum((r.credit for r in self.rows), Decimal(0))


class TrialBalanceRow(BaseModel):
    account_id: str
    name: str
    category: str
    balance: Balance

    @property
    def debit(self) -> Amount:
        return self.balance.amount if self.balance.type == Side.Debit else Decimal(0)

    @property
    def credit(self) -> Amount:
        return self.balance.amount if self.balance.type == Side.Credit else Decimal(0)


class TrialBalance(Report):
    rows: list[TrialBalanceRow]
    total_debits: Amount
    total_credits: Amount

    @classmethod
    def build(cls, engine: BalanceEngine) -> "TrialBalance":
        chart = engine.chart
        categories = {c.id: c.name for c in chart.categories}
        balances = engine.signed_balances()
        rows = sorted(
            (
                TrialBalanceRow(
                    account_id=account.id,
                    name=account.name,
                    category=categories.get(account.category_id, ""),
                    balance=Balance.from_signed(balances[account.id]),
                )
                for account in chart.accounts
            ),
            key=lambda row: row.name,
        )
        report = cls(
            rows=rows,
            total_debits=sum((r.debit for r in rows), Decimal(0)),
            total_credits=sum((r.credit for r in rows), Decimal(0)),
        )
        if not report.is_balanced():
            logger.warning(
                "Trial balance is off by %s (debits %s, credits %s)",
                report.difference,
                report.total_debits,
                report.total_credits,
            )
        return report

    @property
    def difference(self) -> Amount:
        return self.total_debits - self.total_credits

    def is_balanced(self) -> bool:
        return self.difference == 0

    def assert_balanced(self):
        if not self.is_balanced():
            raise IntegrityFault(
                f"Total debits {self.total_debits} differ from total credits "
                f"{self.total_credits} by {self.difference}."
            )
        return self

    def balances(self) -> BalancesDict:
        return BalancesDict({row.name: row.balance.signed for row in self.rows})
