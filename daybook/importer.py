"""Import of bookkeeping rows from spreadsheets.

Each row reads `accountName, date (DD/MM/YYYY), debit, credit, narration`.
A debit becomes an expenditure, a credit becomes an income entry. Accounts
are matched by name or created in the import category. Rows that cannot be
read are skipped and reported in `ImportSummary.skipped`.

Student lists read `StudentId, Name, FatherName, MotherName` and are
enrolled into one class by `daybook.book.Book.import_students_csv`.
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import IO, Iterable

from .base import Amount, to_amount
from .chart import Chart
from .journal import Journal

logger = logging.getLogger(__name__)

DATE_FORMAT = "%d/%m/%Y"


@dataclass
class ImportSummary:
    created_accounts: list[str] = field(default_factory=list)
    income: int = 0
    expenditures: int = 0
    skipped: list[tuple[int, str]] = field(default_factory=list)

    @property
    def imported(self) -> int:
        return self.income + self.expenditures


def read_csv(stream: IO) -> list[dict[str, str]]:
    """Read CSV text or bytes into rows with stripped keys and values."""
    content = stream.read()
    if isinstance(content, bytes):
        content = content.decode("utf-8-sig")
    reader = csv.DictReader(io.StringIO(content))
    return [
        {
            k.strip().lstrip("\ufeff"): v.strip() if isinstance(v, str) else v
            for k, v in row.items()
            if k is not None
        }
        for row in reader
    ]


def parse_date(text: str | None) -> date | None:
    try:
        return datetime.strptime((text or "").strip(), DATE_FORMAT).date()
    except ValueError:
        return None


def parse_amount(value) -> Amount | None:
    """Amount of a cell, zero for a blank cell, None for text that is not a number."""
    if value is None or str(value).strip() == "":
        return Decimal(0)
    try:
        return to_amount(str(value).replace(",", "").strip())
    except ValueError:
        return None


def _problem(row: dict) -> str | None:
    if not str(row.get("accountName") or "").strip():
        return "missing account name"
    if parse_date(row.get("date")) is None:
        return f"bad date {row.get('date')!r}"
    debit, credit = parse_amount(row.get("debit")), parse_amount(row.get("credit"))
    if debit is None or credit is None:
        return "amount is not a number"
    if debit < 0 or credit < 0:
        return "negative amount"
    if (debit > 0) == (credit > 0):
        return "exactly one of debit and credit must be set"
    return None


def import_rows(
    chart: Chart, journal: Journal, rows: Iterable[dict], category_name: str = "Imported"
) -> ImportSummary:
    """Append entries for the rows to the journal, creating accounts as needed."""
    summary = ImportSummary()
    for number, row in enumerate(rows, start=1):
        if problem := _problem(row):
            logger.warning("Skipping import row %d: %s", number, problem)
            summary.skipped.append((number, problem))
            continue
        name = str(row["accountName"]).strip()
        account = chart.find_account_by_name(name)
        if account is None:
            category = chart.find_category_by_name(category_name) or chart.create_category(
                category_name
            )
            account = chart.create_account(name, category.id)
            summary.created_accounts.append(name)
        on = parse_date(row["date"])
        debit, credit = parse_amount(row.get("debit")), parse_amount(row.get("credit"))
        narration = str(row.get("narration") or "").strip()
        if debit:
            journal.record_expenditure(chart, on, account.id, debit, narration)  # type: ignore
            summary.expenditures += 1
        else:
            journal.record_income(chart, on, account.id, credit, narration)  # type: ignore
            summary.income += 1
    logger.info(
        "Imported %d row(s), skipped %d, created %d account(s)",
        summary.imported,
        len(summary.skipped),
        len(summary.created_accounts),
    )
    return summary


STUDENT_FIELDS = ("StudentId", "Name", "FatherName", "MotherName")


@dataclass
class StudentRow:
    student_code: str
    name: str
    father_name: str
    mother_name: str


def student_rows(rows: Iterable[dict]) -> tuple[list[StudentRow], list[tuple[int, str]]]:
    """Read `StudentId, Name, FatherName, MotherName` rows, all four are required."""
    accepted, skipped = [], []
    for number, row in enumerate(rows, start=1):
        values = [str(row.get(key) or "").strip() for key in STUDENT_FIELDS]
        if missing := [key for key, value in zip(STUDENT_FIELDS, values) if not value]:
            logger.warning("Skipping student row %d: missing %s", number, ", ".join(missing))
            skipped.append((number, f"missing {', '.join(missing)}"))
            continue
        accepted.append(StudentRow(*values))
    return accepted, skipped
