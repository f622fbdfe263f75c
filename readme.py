from datetime import date

from daybook import Book, Draft, MemoryStore, Settings, VoucherType, configure_logging

# Open books for a school, the default chart of accounts is created on first use
settings = Settings()
configure_logging(settings)
book = Book.open("green-valley", MemoryStore(), settings)
cash = book.chart.find_account_by_name("Cash in Hand")
rent = book.chart.find_account_by_name("Rent")
capital = book.chart.find_account_by_name("Capital Account")

# Classes, students and fees
grade = book.add_class("Grade 1")
student = book.add_student("S-001", "Asha Rao", grade.id, father_name="Vikram Rao")
tuition = book.assign_fee(grade.id, book.add_fee_head("Tuition").id, 500)

# Day book starts from a declared opening balance
book.set_opening_balance(date(2024, 4, 1), 1000)
book.post(Draft(VoucherType.Receipt, date(2024, 4, 1), "Owner funds").double(cash.id, capital.id, 1000))
book.record_payment(student.id, tuition.id, 500, date(2024, 4, 2))
book.post(Draft(VoucherType.Payment, date(2024, 4, 3), "April rent").double(rent.id, cash.id, 300))

print(book.day_book(date(2024, 4, 2)).model_dump_json(indent=2))
print(book.ledger(cash.id, date(2024, 4, 1), date(2024, 4, 30)).model_dump_json(indent=2))
trial_balance = book.trial_balance().assert_balanced()
assert book.opening_balance(date(2024, 4, 4)).signed == 2200
assert trial_balance.balances() == {
    "Bank Account": 0,
    "Capital Account": 1000,
    "Cash in Hand": -1200,
    "Late Fees": 0,
    "Rent": -300,
    "Salaries": 0,
    "Tuition Fees": 500,
    "Utilities": 0,
    "Asha Rao": 0,
}
