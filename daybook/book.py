"""User-facing Book class: one tenant's records, cascades and reports."""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from typing import IO, Iterable, Iterator

from .backup import BackupData, export_backup, restore_backup
from .base import DaybookError, NotFound, Numeric, PersistenceFailure, Side
from .chart import Account, AccountCategory, Chart
from .config import Settings, get_settings
from .engine import BalanceEngine, DaySummary
from .entry import Balance, Draft, DraftLine, Expenditure, IncomeEntry, JournalEntry, VoucherType
from .fees import ClassFee, Due, FeeHead, FeePayment
from .importer import ImportSummary, import_rows, read_csv, student_rows
from .reports import DayBook, LedgerReport, TrialBalance
from .roster import ClassInfo, InstituteInfo, Student
from .store import JsonFileStore, KeyValueStore, State, load_state

logger = logging.getLogger(__name__)


@dataclass
class Book:
    """Records of one tenant.

    Every change is applied to a copy of the state. The collections the change
    touched are written to the store in one batch and the copy replaces the
    current state only after the store accepted the write.
    """

    tenant: str
    store: KeyValueStore
    settings: Settings = field(default_factory=get_settings)
    state: State = field(init=False)

    def __post_init__(self):
        self.state = load_state(self.store, self.tenant)

    @classmethod
    def open(
        cls,
        tenant: str,
        store: KeyValueStore | None = None,
        settings: Settings | None = None,
        with_default_chart: bool = True,
    ) -> "Book":
        settings = settings or get_settings()
        book = cls(tenant, store or JsonFileStore(settings.data_dir), settings)
        if with_default_chart and not book.state.chart.accounts:
            book.seed_default_chart()
        return book

    @contextmanager
    def change(self) -> Iterator[State]:
        draft = self.state.model_copy(deep=True)
        yield draft
        if changed := draft.changed(self.state):
            with self.persisting():
                self.store.write_many(self.tenant, changed)
        self.state = draft

    @contextmanager
    def persisting(self) -> Iterator[None]:
        """Turn any store error that is not a `DaybookError` into `PersistenceFailure`."""
        try:
            yield
        except DaybookError:
            raise
        except Exception as e:
            raise PersistenceFailure(f"Store rejected write for {self.tenant}: {e}") from e

    @property
    def chart(self) -> Chart:
        return self.state.chart

    @property
    def engine(self) -> BalanceEngine:
        """Fresh balance engine over the current records."""
        return BalanceEngine(self.state.chart, self.state.journal)

    def seed_default_chart(self):
        with self.change() as s:
            default = Chart.default()
            s.chart.categories.extend(default.categories)
            s.chart.accounts.extend(default.accounts)

    # Institute

    @property
    def institute(self) -> InstituteInfo:
        return self.state.institute

    def update_institute(self, **changes) -> InstituteInfo:
        with self.change() as s:
            s.institute = InstituteInfo.model_validate(s.institute.model_dump() | changes)
            return s.institute

    # Chart of accounts

    def create_category(self, name: str) -> AccountCategory:
        with self.change() as s:
            return s.chart.create_category(name)

    def rename_category(self, category_id: str, name: str):
        with self.change() as s:
            s.chart.rename_category(category_id, name)

    def delete_category(self, category_id: str):
        with self.change() as s:
            s.chart.delete_category(category_id)

    def create_account(self, name: str, category_id: str, **fields) -> Account:
        with self.change() as s:
            return s.chart.create_account(name, category_id, **fields)

    def edit_account(self, account_id: str, **changes) -> Account:
        with self.change() as s:
            return s.chart.edit_account(account_id, **changes)

    def delete_account(self, account_id: str):
        with self.change() as s:
            s.chart.delete_account(account_id)

    # Classes and students

    def add_class(self, name: str) -> ClassInfo:
        with self.change() as s:
            cls = s.roster.add_class(name)
            s.chart.ensure_class_category(name)
            return cls

    def rename_class(self, class_id: str, name: str):
        with self.change() as s:
            old_name = s.roster.rename_class(class_id, name)
            s.chart.rename_class_category(old_name, name)

    def remove_class(self, class_id: str):
        """Remove class, its students with their fees and accounts, and its fee assignments."""
        with self.change() as s:
            cls, students = s.roster.remove_class(class_id)
            self._forget_students(s, [st.id for st in students])
            s.fees.forget_class(class_id)
            dropped = s.chart.drop_class_category_if_orphaned(cls.name)
        logger.info(
            "Removed class %s with %d student(s), category dropped: %s",
            cls.name,
            len(students),
            dropped,
        )

    def add_student(self, student_code: str, name: str, class_id: str, **fields) -> Student:
        with self.change() as s:
            return self._enroll(s, student_code, name, class_id, **fields)

    @staticmethod
    def _enroll(s: State, student_code: str, name: str, class_id: str, **fields) -> Student:
        student = s.roster.add_student(student_code, name, class_id, **fields)
        class_name = s.roster.get_class(class_id).name
        s.chart.open_student_account(
            student.id, name, class_name, father_name=student.father_name or None
        )
        return student

    def import_students_csv(
        self, stream: IO, class_id: str
    ) -> tuple[list[Student], list[tuple[int, str]]]:
        """Enroll students listed in CSV into the class, return them and skipped rows."""
        rows, skipped = student_rows(read_csv(stream))
        with self.change() as s:
            s.roster.get_class(class_id)
            students = [
                self._enroll(
                    s,
                    row.student_code,
                    row.name,
                    class_id,
                    father_name=row.father_name,
                    mother_name=row.mother_name,
                )
                for row in rows
            ]
        logger.info("Imported %d student(s), skipped %d row(s)", len(students), len(skipped))
        return students, skipped

    def rename_student(self, student_id: str, name: str):
        with self.change() as s:
            s.roster.rename_student(student_id, name)
            s.chart.rename_student_account(student_id, name)

    def move_student(self, student_id: str, class_id: str):
        with self.change() as s:
            s.roster.move_student(student_id, class_id)
            s.chart.move_student_account(student_id, s.roster.get_class(class_id).name)

    def remove_student(self, student_id: str):
        with self.change() as s:
            s.roster.remove_student(student_id)
            self._forget_students(s, [student_id])

    @staticmethod
    def _forget_students(s: State, student_ids: list[str]):
        payment_ids = s.fees.forget_students(student_ids)
        s.journal.purge_fee_payments(payment_ids)
        s.chart.close_student_accounts(student_ids)

    def student_account(self, student_id: str) -> Account:
        if account := self.state.chart.student_account(student_id):
            return account
        raise NotFound(f"No account for student {student_id}.")

    # Journal

    def record_income(
        self, on: date, account_id: str, amount: Numeric, remarks: str = ""
    ) -> IncomeEntry:
        with self.change() as s:
            return s.journal.record_income(s.chart, on, account_id, amount, remarks)

    def record_expenditure(
        self, on: date, account_id: str, amount: Numeric, remarks: str = ""
    ) -> Expenditure:
        with self.change() as s:
            return s.journal.record_expenditure(s.chart, on, account_id, amount, remarks)

    def edit_entry(self, entry_id: str, **changes):
        with self.change() as s:
            return s.journal.edit_entry(s.chart, entry_id, **changes)

    def delete_entry(self, entry_id: str):
        with self.change() as s:
            s.journal.delete_entry(entry_id)

    def post_voucher(
        self, voucher_type: VoucherType, on: date, narration: str, lines: Iterable[DraftLine]
    ) -> JournalEntry:
        with self.change() as s:
            return s.journal.post_voucher(s.chart, voucher_type, on, narration, lines)

    def post(self, draft: Draft) -> JournalEntry:
        with self.change() as s:
            return s.journal.post_draft(s.chart, draft)

    def delete_voucher(self, voucher_id: str):
        with self.change() as s:
            s.journal.delete_voucher(voucher_id)

    def set_opening_balance(self, on: date, amount: Numeric, type: Side = Side.Credit):
        with self.change() as s:
            return s.journal.set_override(on, amount, type)

    def delete_opening_balance(self, on: date):
        with self.change() as s:
            s.journal.delete_override(on)

    # Fees

    def add_fee_head(self, name: str) -> FeeHead:
        with self.change() as s:
            return s.fees.add_fee_head(name)

    def rename_fee_head(self, fee_head_id: str, name: str):
        with self.change() as s:
            s.fees.rename_fee_head(fee_head_id, name)

    def delete_fee_head(self, fee_head_id: str):
        with self.change() as s:
            s.fees.delete_fee_head(fee_head_id)

    def assign_fee(self, class_id: str, fee_head_id: str, amount: Numeric) -> ClassFee:
        with self.change() as s:
            s.roster.get_class(class_id)
            return s.fees.assign(class_id, fee_head_id, amount)

    def unassign_fee(self, class_fee_id: str):
        with self.change() as s:
            s.fees.unassign(class_fee_id)

    def set_concession(self, student_id: str, class_fee_id: str, amount: Numeric):
        with self.change() as s:
            s.roster.get_student(student_id)
            s.fees.set_concession(student_id, class_fee_id, amount)

    def record_payment(
        self, student_id: str, class_fee_id: str, amount: Numeric, on: date, remarks: str = ""
    ) -> FeePayment:
        """Record fee payment together with its receipt in the journal."""
        with self.change() as s:
            student = s.roster.get_student(student_id)
            payment = s.fees.add_payment(student, class_fee_id, amount, on, remarks)
            head = s.fees.fee_head(s.fees.class_fee(class_fee_id).fee_head_id).name
            narration = f"Fee received from {student.name} ({student.student_code}) for {head}."
            if remarks:
                narration = f"{narration} {remarks}"
            if self.settings.accounting_model == "double":
                self._post_receipt(s, payment, narration)
            else:
                account = s.chart.student_account(student.id)
                if account is None:
                    raise NotFound(f"No account for student {student.name}.")
                s.journal.record_income(
                    s.chart,
                    on,
                    account.id,
                    payment.amount_paid,
                    narration,
                    fee_payment_id=payment.id,
                )
            return payment

    def _post_receipt(self, s: State, payment: FeePayment, narration: str):
        cash = s.chart.find_account_by_name(self.settings.cash_account)
        income = s.chart.find_account_by_name(self.settings.fee_income_account)
        if cash is None or income is None:
            raise NotFound(
                f"Accounts {self.settings.cash_account!r} and "
                f"{self.settings.fee_income_account!r} are required to record fees."
            )
        s.journal.post_voucher(
            s.chart,
            VoucherType.Receipt,
            payment.payment_date,
            narration,
            [
                DraftLine(cash.id, debit=payment.amount_paid),
                DraftLine(income.id, credit=payment.amount_paid),
            ],
            fee_payment_id=payment.id,
        )

    def delete_payment(self, payment_id: str):
        """Delete fee payment and the journal records it created."""
        with self.change() as s:
            s.fees.payment(payment_id)
            s.fees.remove_payments([payment_id])
            removed = s.journal.purge_fee_payments([payment_id])
        logger.info("Deleted fee payment %s and %d linked record(s)", payment_id, removed)

    def dues(self, student_id: str) -> list[Due]:
        return self.state.fees.dues(self.state.roster.get_student(student_id))

    # Reports

    def opening_balance(self, on: date) -> Balance:
        return self.engine.opening_balance(on)

    def day_book(self, on: date) -> DayBook:
        return DayBook.build(self.engine, on)

    def daily_balances(self, start: date, end: date) -> list[DaySummary]:
        return self.engine.daily_balances(start, end)

    def ledger(self, account_id: str, start: date, end: date) -> LedgerReport:
        return LedgerReport.build(self.engine, account_id, start, end)

    def trial_balance(self) -> TrialBalance:
        return TrialBalance.build(self.engine)

    # Import and backup

    def import_rows(self, rows: Iterable[dict]) -> ImportSummary:
        with self.change() as s:
            return import_rows(s.chart, s.journal, rows, self.settings.import_category)

    def import_csv(self, stream: IO) -> ImportSummary:
        return self.import_rows(read_csv(stream))

    def export_backup(self) -> BackupData:
        return export_backup(self.state)

    def restore(self, backup: BackupData, confirm: bool = False):
        with self.persisting():
            state = restore_backup(self.store, self.tenant, backup, confirm)
        self.state = state
