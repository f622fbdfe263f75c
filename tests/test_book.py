from datetime import date

import pytest

from daybook import BackupData, Book, MemoryStore
from daybook.base import (
    DaybookError,
    Immutable,
    NotFound,
    PersistenceFailure,
    VoucherLinked,
)
from daybook.entry import Balance, DraftLine, VoucherType

PAID_ON = date(2024, 4, 1)


class BrokenStore(MemoryStore):
    broken = False

    def write_many(self, tenant, collections):
        if self.broken:
            raise OSError("disk full")
        super().write_many(tenant, collections)


@pytest.mark.book
def test_open_seeds_default_chart(book):
    assert book.chart.find_account_by_name("Cash in Hand").is_cash
    assert book.trial_balance().is_balanced()


@pytest.mark.book
def test_book_reloads_from_store(settings):
    store = MemoryStore()
    book = Book.open("school", store, settings)
    book.add_class("Grade 1")
    assert Book("school", store, settings).state == book.state


@pytest.mark.book
def test_tenants_are_kept_apart(settings):
    store = MemoryStore()
    Book.open("north", store, settings).add_class("Grade 1")
    assert Book.open("south", store, settings).state.roster.classes == []


@pytest.mark.book
def test_invalid_tenant_name(settings):
    with pytest.raises(DaybookError):
        Book.open("../etc", MemoryStore(), settings)


@pytest.mark.book
def test_student_gets_account_in_class_category(school):
    book, grade, student, _ = school
    account = book.student_account(student.id)
    category = book.chart.category(account.category_id)
    assert (account.name, account.father_name) == ("Asha Rao", "Vikram Rao")
    assert (category.name, category.is_system) == ("Grade 1", True)


@pytest.mark.book
def test_renames_follow_roster(school):
    book, grade, student, _ = school
    book.rename_student(student.id, "Asha R.")
    book.rename_class(grade.id, "Grade One")
    account = book.student_account(student.id)
    assert account.name == "Asha R."
    assert book.chart.category(account.category_id).name == "Grade One"


@pytest.mark.book
def test_move_student(school):
    book, _, student, _ = school
    grade2 = book.add_class("Grade 2")
    book.move_student(student.id, grade2.id)
    account = book.student_account(student.id)
    assert book.chart.category(account.category_id).name == "Grade 2"


@pytest.mark.book
def test_duplicate_class_name_is_rejected(school):
    book, *_ = school
    with pytest.raises(DaybookError):
        book.add_class("Grade 1")


@pytest.mark.book
def test_student_account_is_deleted_only_with_student(school):
    book, _, student, _ = school
    account = book.student_account(student.id)
    with pytest.raises(Immutable):
        book.delete_account(account.id)
    book.remove_student(student.id)
    with pytest.raises(NotFound):
        book.chart.account(account.id)


@pytest.mark.book
def test_fee_payment_posts_receipt(school):
    book, _, student, class_fee = school
    payment = book.record_payment(student.id, class_fee.id, 500, PAID_ON)
    (voucher,) = book.state.journal.vouchers
    assert voucher.voucher_type == VoucherType.Receipt
    assert voucher.fee_payment_id == payment.id
    assert book.day_book(PAID_ON).total_income == 500
    assert book.opening_balance(date(2024, 4, 2)) == Balance(amount=500)
    assert book.trial_balance().is_balanced()


@pytest.mark.book
def test_linked_voucher_goes_with_payment(school):
    book, _, student, class_fee = school
    payment = book.record_payment(student.id, class_fee.id, 500, PAID_ON)
    (voucher,) = book.state.journal.vouchers
    with pytest.raises(VoucherLinked):
        book.delete_voucher(voucher.id)
    assert book.state.fees.payments == [payment]
    book.delete_payment(payment.id)
    assert book.state.journal.vouchers == []
    assert book.state.fees.payments == []


@pytest.mark.book
def test_simple_model_records_income_on_student_account(settings):
    simple = settings.model_copy(update={"accounting_model": "simple"})
    book = Book.open("school", MemoryStore(), simple)
    grade = book.add_class("Grade 1")
    student = book.add_student("S-001", "Asha Rao", grade.id)
    class_fee = book.assign_fee(grade.id, book.add_fee_head("Tuition").id, 500)
    payment = book.record_payment(student.id, class_fee.id, 200, PAID_ON, "first part")
    (entry,) = book.state.journal.income
    assert entry.account_id == book.student_account(student.id).id
    assert entry.fee_payment_id == payment.id
    assert entry.remarks.endswith("first part")
    book.remove_student(student.id)
    assert book.state.journal.income == []


@pytest.mark.book
def test_payment_needs_fee_income_account(school):
    book, _, student, class_fee = school
    book.delete_account(book.chart.find_account_by_name("Tuition Fees").id)
    with pytest.raises(NotFound):
        book.record_payment(student.id, class_fee.id, 500, PAID_ON)
    assert book.state.fees.payments == []


@pytest.mark.book
def test_payment_for_other_class_fee_is_rejected(school):
    book, _, student, _ = school
    grade2 = book.add_class("Grade 2")
    other_fee = book.assign_fee(grade2.id, book.add_fee_head("Lab").id, 100)
    with pytest.raises(DaybookError):
        book.record_payment(student.id, other_fee.id, 100, PAID_ON)


@pytest.mark.book
def test_remove_class_cascades(school):
    book, grade, student, class_fee = school
    book.set_concession(student.id, class_fee.id, 50)
    book.record_payment(student.id, class_fee.id, 450, PAID_ON)
    book.remove_class(grade.id)
    state = book.state
    assert state.roster.students == []
    assert state.fees.payments == state.fees.class_fees == state.fees.concessions == []
    assert state.journal.vouchers == []
    assert book.chart.student_account(student.id) is None
    assert book.chart.find_category_by_name("Grade 1") is None


@pytest.mark.book
def test_dues(school):
    book, _, student, class_fee = school
    book.set_concession(student.id, class_fee.id, 100)
    book.record_payment(student.id, class_fee.id, 300, PAID_ON)
    (due,) = book.dues(student.id)
    assert (due.fee_head, due.amount, due.concession, due.paid) == ("Tuition", 500, 100, 300)
    assert due.balance == 100


@pytest.mark.book
def test_voucher_and_ledger_through_book(book):
    cash = book.chart.find_account_by_name("Cash in Hand")
    rent = book.chart.find_account_by_name("Rent")
    voucher = book.post_voucher(
        VoucherType.Payment,
        date(2024, 5, 1),
        "May rent",
        [DraftLine(rent.id, debit=800), DraftLine(cash.id, credit=800)],
    )
    report = book.ledger(rent.id, date(2024, 5, 1), date(2024, 5, 31))
    assert [r.voucher_number for r in report.rows] == [voucher.voucher_number]
    assert report.closing == Balance.from_signed(-800)


@pytest.mark.book
def test_failed_write_leaves_state_intact(settings):
    store = BrokenStore()
    book = Book.open("school", store, settings)
    before = book.state.model_copy(deep=True)
    store.broken = True
    with pytest.raises(PersistenceFailure):
        book.add_class("Grade 1")
    assert book.state == before
    store.broken = False
    book.add_class("Grade 1")
    assert Book("school", store, settings).state.roster.classes[0].name == "Grade 1"


@pytest.mark.book
def test_failed_validation_writes_nothing(book):
    rent = book.chart.find_account_by_name("Rent")
    with pytest.raises(DaybookError):
        book.post_voucher(VoucherType.Journal, date(2024, 5, 1), "", [DraftLine(rent.id, debit=1)])
    assert book.state.journal.vouchers == []


@pytest.mark.book
def test_opening_balance_declaration(book):
    book.set_opening_balance(date(2024, 3, 1), 1000)
    cash = book.chart.find_account_by_name("Cash in Hand")
    book.record_income(date(2024, 3, 2), cash.id, 300)
    book.record_expenditure(date(2024, 3, 3), cash.id, 100)
    assert book.opening_balance(date(2024, 3, 4)) == Balance(amount=1200)
    assert [s.closing.signed for s in book.daily_balances(date(2024, 3, 1), date(2024, 3, 3))] == [
        1000,
        1300,
        1200,
    ]
    book.delete_opening_balance(date(2024, 3, 1))
    assert book.opening_balance(date(2024, 3, 4)) == Balance(amount=200)


@pytest.mark.book
def test_backup_restore(school):
    book, _, student, class_fee = school
    backup = book.export_backup()
    book.remove_student(student.id)
    with pytest.raises(DaybookError):
        book.restore(backup)
    assert book.state.roster.students == []
    book.restore(backup, confirm=True)
    assert book.state.roster.get_student(student.id).name == "Asha Rao"
    assert Book("school", book.store, book.settings).state == book.state


@pytest.mark.book
def test_backup_file_round_trip(tmp_path, school):
    book, *_ = school
    path = tmp_path / "backup.json"
    book.export_backup().save(path)
    restored = BackupData.load(path)
    assert restored.to_state() == book.state


@pytest.mark.book
def test_fee_income_entry_stays_with_payment(settings):
    simple = settings.model_copy(update={"accounting_model": "simple"})
    book = Book.open("school", MemoryStore(), simple)
    grade = book.add_class("Grade 1")
    student = book.add_student("S-001", "Asha Rao", grade.id)
    class_fee = book.assign_fee(grade.id, book.add_fee_head("Tuition").id, 500)
    book.record_payment(student.id, class_fee.id, 200, PAID_ON)
    (entry,) = book.state.journal.income
    with pytest.raises(VoucherLinked):
        book.edit_entry(entry.id, fee_payment_id=None)
    with pytest.raises(VoucherLinked):
        book.delete_entry(entry.id)
    assert book.state.journal.income == [entry]


@pytest.mark.book
def test_rename_class_to_taken_name_is_rejected(school):
    book, grade, *_ = school
    grade2 = book.add_class("Grade 2")
    with pytest.raises(DaybookError):
        book.rename_class(grade2.id, "Grade 1")
    book.rename_class(grade.id, "Grade 1")
    system = [c.name for c in book.chart.categories if c.is_system]
    assert sorted(system) == ["Grade 1", "Grade 2"]


@pytest.mark.book
def test_institute_details(settings):
    store = MemoryStore()
    book = Book.open("school", store, settings)
    assert book.institute.name == "My Institute"
    book.update_institute(name="Green Valley School", address="12 Hill Road")
    assert Book("school", store, settings).institute.address == "12 Hill Road"
    backup = book.export_backup()
    book.update_institute(name="Renamed")
    book.restore(backup, confirm=True)
    assert book.institute.name == "Green Valley School"


@pytest.mark.book
def test_failed_restore_leaves_state_intact(settings):
    store = BrokenStore()
    book = Book.open("school", store, settings)
    book.add_class("Grade 1")
    backup = book.export_backup()
    book.add_class("Grade 2")
    store.broken = True
    with pytest.raises(PersistenceFailure):
        book.restore(backup, confirm=True)
    assert [c.name for c in book.state.roster.classes] == ["Grade 1", "Grade 2"]


@pytest.mark.book
def test_unconfirmed_restore_is_not_a_store_failure(book):
    with pytest.raises(DaybookError) as e:
        book.restore(book.export_backup())
    assert not isinstance(e.value, PersistenceFailure)
