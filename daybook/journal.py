"""Transaction ledger store: simple postings, vouchers and day book anchors.

The journal owns its records. Every write checks the records it creates
against the chart of accounts before anything is changed.
"""

import logging
from datetime import date
from typing import Iterable, Iterator

from pydantic import BaseModel, ConfigDict

from .base import (
    Immutable,
    NotFound,
    Numeric,
    SaveLoadMixin,
    Side,
    UnresolvedAccount,
    VoucherLinked,
)
from .chart import Chart
from .entry import (
    Draft,
    DraftLine,
    Expenditure,
    IncomeEntry,
    JournalEntry,
    OpeningBalanceOverride,
    SimplePosting,
    VoucherType,
)
from .validator import validate_lines

logger = logging.getLogger(__name__)

# Fields a user may not change with `Journal.edit_entry`.
ENTRY_PROTECTED_FIELDS = {"id", "tag", "fee_payment_id"}


class Journal(BaseModel, SaveLoadMixin):
    model_config = ConfigDict(extra="forbid")

    income: list[IncomeEntry] = []
    expenditures: list[Expenditure] = []
    vouchers: list[JournalEntry] = []
    overrides: list[OpeningBalanceOverride] = []

    @property
    def simple_postings(self) -> Iterator[SimplePosting]:
        yield from self.income
        yield from self.expenditures

    # Simple postings

    @staticmethod
    def _resolve(chart: Chart, account_id: str):
        if account_id not in chart.account_ids:
            raise UnresolvedAccount(f"Account {account_id} does not exist.")

    def record_income(
        self, chart: Chart, on: date, account_id: str, amount: Numeric, remarks: str = "", **fields
    ) -> IncomeEntry:
        self._resolve(chart, account_id)
        entry = IncomeEntry(date=on, account_id=account_id, amount=amount, remarks=remarks, **fields)
        self.income.append(entry)
        return entry

    def record_expenditure(
        self, chart: Chart, on: date, account_id: str, amount: Numeric, remarks: str = "", **fields
    ) -> Expenditure:
        self._resolve(chart, account_id)
        entry = Expenditure(
            date=on, account_id=account_id, amount=amount, remarks=remarks, **fields
        )
        self.expenditures.append(entry)
        return entry

    def find_entry(self, entry_id: str) -> SimplePosting:
        for entry in self.simple_postings:
            if entry.id == entry_id:
                return entry
        raise NotFound(f"Entry {entry_id} not found.")

    def _collection(self, entry: SimplePosting) -> list:
        return self.income if isinstance(entry, IncomeEntry) else self.expenditures

    def edit_entry(self, chart: Chart, entry_id: str, **changes) -> SimplePosting:
        entry = self.find_entry(entry_id)
        if entry.fee_payment_id:
            raise VoucherLinked(f"Entry {entry_id} belongs to fee payment {entry.fee_payment_id}.")
        if forbidden := ENTRY_PROTECTED_FIELDS.intersection(changes):
            raise Immutable(f"Cannot change {sorted(forbidden)}.")
        if "account_id" in changes:
            self._resolve(chart, changes["account_id"])
        edited = type(entry).model_validate(entry.model_dump() | changes)
        collection = self._collection(entry)
        collection[collection.index(entry)] = edited
        return edited

    def delete_entry(self, entry_id: str):
        entry = self.find_entry(entry_id)
        if entry.fee_payment_id:
            raise VoucherLinked(f"Entry {entry_id} belongs to fee payment {entry.fee_payment_id}.")
        self._collection(entry).remove(entry)
        return self

    # Vouchers

    def next_voucher_number(self) -> int:
        return max((v.voucher_number for v in self.vouchers), default=0) + 1

    def post_voucher(
        self,
        chart: Chart,
        voucher_type: VoucherType,
        on: date,
        narration: str,
        lines: Iterable[DraftLine],
        fee_payment_id: str | None = None,
    ) -> JournalEntry:
        clean = validate_lines(lines, chart.account_ids)
        voucher = JournalEntry(
            date=on,
            voucher_type=voucher_type,
            voucher_number=self.next_voucher_number(),
            narration=narration,
            lines=clean,
            fee_payment_id=fee_payment_id,
        )
        self.vouchers.append(voucher)
        logger.info(
            "Posted %s voucher #%d on %s for %s",
            voucher.voucher_type.value,
            voucher.voucher_number,
            voucher.date,
            voucher.total(Side.Debit),
        )
        return voucher

    def post_draft(self, chart: Chart, draft: Draft, **fields) -> JournalEntry:
        return self.post_voucher(
            chart, draft.voucher_type, draft.date, draft.narration, draft.lines, **fields
        )

    def find_voucher(self, voucher_id: str) -> JournalEntry:
        for voucher in self.vouchers:
            if voucher.id == voucher_id:
                return voucher
        raise NotFound(f"Voucher {voucher_id} not found.")

    def delete_voucher(self, voucher_id: str):
        voucher = self.find_voucher(voucher_id)
        if voucher.fee_payment_id:
            raise VoucherLinked(
                f"Voucher #{voucher.voucher_number} belongs to fee payment {voucher.fee_payment_id}."
            )
        self.vouchers.remove(voucher)
        return self

    def purge_fee_payments(self, payment_ids: Iterable[str]) -> int:
        """Remove records created by the fee payments, return how many were removed."""
        ids = set(payment_ids)
        before = len(self.vouchers) + len(self.income) + len(self.expenditures)
        self.vouchers = [v for v in self.vouchers if v.fee_payment_id not in ids]
        self.income = [e for e in self.income if e.fee_payment_id not in ids]
        self.expenditures = [e for e in self.expenditures if e.fee_payment_id not in ids]
        return before - len(self.vouchers) - len(self.income) - len(self.expenditures)

    # Anchors

    def set_override(self, on: date, amount: Numeric, type: Side = Side.Credit):
        """Declare opening balance for a date, replacing an earlier declaration."""
        override = OpeningBalanceOverride(date=on, amount=amount, type=type)
        self.overrides = [o for o in self.overrides if o.date != on] + [override]
        self.overrides.sort(key=lambda o: o.date)
        return override

    def delete_override(self, on: date):
        if not any(o.date == on for o in self.overrides):
            raise NotFound(f"No opening balance declared for {on}.")
        self.overrides = [o for o in self.overrides if o.date != on]
        return self
