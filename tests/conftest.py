import pytest

from daybook import Book, Chart, MemoryStore, Settings
from daybook.base import Side
from daybook.journal import Journal


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(data_dir=tmp_path)


@pytest.fixture
def toy_chart() -> Chart:
    chart = Chart()
    assets = chart.create_category("Assets")
    other = chart.create_category("Other")
    chart.create_account("Cash", assets.id, is_cash=True, id="cash")
    chart.create_account(
        "Account A", other.id, opening_balance=1000, opening_balance_type=Side.Credit, id="a"
    )
    chart.create_account("Rent", other.id, id="rent")
    chart.create_account("Fees", other.id, id="fees")
    return chart


@pytest.fixture
def toy_journal() -> Journal:
    return Journal()


@pytest.fixture
def book(settings) -> Book:
    return Book.open("school", MemoryStore(), settings)


@pytest.fixture
def school(book):
    """Book with one class, one student and a tuition fee of 500 for the class."""
    grade = book.add_class("Grade 1")
    student = book.add_student("S-001", "Asha Rao", grade.id, father_name="Vikram Rao")
    head = book.add_fee_head("Tuition")
    class_fee = book.assign_fee(grade.id, head.id, 500)
    return book, grade, student, class_fee
