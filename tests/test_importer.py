import io
from datetime import date

import pytest

from daybook.importer import import_rows, parse_amount, parse_date, read_csv

CSV = """accountName,date,debit,credit,narration
Rent,01/02/2024,"1,200",,February rent
Donations,02/02/2024,,500,Old students
Rent,31/02/2024,10,,bad date
Rent,03/02/2024,10,10,both set
,03/02/2024,10,,no account
Rent,03/02/2024,ten,,not a number
"""


@pytest.mark.entry
def test_parse_helpers():
    assert parse_date("05/01/2024") == date(2024, 1, 5)
    assert parse_date("2024-01-05") is None
    assert parse_amount("") == 0
    assert parse_amount("1,234.5") == 1234.5
    assert parse_amount("abc") is None


@pytest.mark.entry
def test_read_csv_strips_bom():
    rows = read_csv(io.BytesIO("\ufeffaccountName,date\n Rent ,01/01/2024\n".encode("utf-8")))
    assert rows == [{"accountName": "Rent", "date": "01/01/2024"}]


@pytest.mark.entry
def test_import_skips_bad_rows(toy_chart, toy_journal):
    summary = import_rows(toy_chart, toy_journal, read_csv(io.StringIO(CSV)))
    assert (summary.expenditures, summary.income) == (1, 1)
    assert [number for number, _ in summary.skipped] == [3, 4, 5, 6]
    assert summary.created_accounts == ["Donations"]
    donations = toy_chart.find_account_by_name("Donations")
    assert toy_chart.category(donations.category_id).name == "Imported"
    assert toy_journal.expenditures[0].amount == 1200
    assert toy_journal.expenditures[0].account_id == "rent"


@pytest.mark.book
def test_book_import_csv(book):
    summary = book.import_csv(io.StringIO(CSV))
    assert summary.imported == 2
    assert book.opening_balance(date(2024, 2, 3)).signed == -700


@pytest.mark.entry
@pytest.mark.parametrize("cell", ["NaN", "sNaN", "Infinity", "-inf"])
def test_not_finite_amount_is_skipped(toy_chart, toy_journal, cell):
    rows = [
        {"accountName": "Rent", "date": "01/02/2024", "debit": cell, "narration": "odd"},
        {"accountName": "Rent", "date": "02/02/2024", "debit": "10", "narration": "ok"},
    ]
    summary = import_rows(toy_chart, toy_journal, rows)
    assert summary.skipped == [(1, "amount is not a number")]
    assert summary.expenditures == 1


STUDENTS = """StudentId,Name,FatherName,MotherName
S-101,Ravi Kumar,Suresh Kumar,Lata Kumar
S-102,Meena Das,,Rita Das
S-103,Imran Ali,Akbar Ali,Noor Ali
"""


@pytest.mark.book
def test_import_students_csv(book):
    grade = book.add_class("Grade 3")
    students, skipped = book.import_students_csv(io.StringIO(STUDENTS), grade.id)
    assert [s.student_code for s in students] == ["S-101", "S-103"]
    assert skipped == [(2, "missing FatherName")]
    assert students[0].mother_name == "Lata Kumar"
    account = book.student_account(students[1].id)
    assert (account.name, account.father_name) == ("Imran Ali", "Akbar Ali")
    assert book.chart.category(account.category_id).name == "Grade 3"
