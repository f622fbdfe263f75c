"""Chart of accounts: account categories and accounts.

System categories mirror school classes and student accounts mirror
students. Both are maintained through the `*_class_*` and `*_student_*`
hooks and refuse manual edits.
"""

import logging
from decimal import Decimal
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .base import (
    Amount,
    CategoryInUse,
    DaybookError,
    Immutable,
    NotFound,
    Numeric,
    SaveLoadMixin,
    Side,
    new_id,
    to_amount,
)

logger = logging.getLogger(__name__)


class AccountCategory(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id)
    name: str
    is_system: bool = False


class Account(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id)
    name: str
    category_id: str
    is_student_account: bool = False
    student_id: str | None = None
    opening_balance: Amount = Decimal(0)
    opening_balance_type: Side = Side.Debit
    is_cash: bool = False
    father_name: str | None = None
    mobile: str | None = None

    @field_validator("opening_balance", mode="before")
    @classmethod
    def _quantize(cls, value):
        amount = to_amount(value)
        if amount < 0:
            raise ValueError("Opening balance cannot be negative.")
        return amount

    @property
    def signed_opening(self) -> Amount:
        """Opening balance with credit positive and debit negative."""
        return self.opening_balance_type.sign(self.opening_balance)


# Fields a user may not change with `Chart.edit_account`.
PROTECTED_FIELDS = {"id", "is_student_account", "student_id"}

DEFAULT_CATEGORIES = ("Assets", "Liabilities", "Equity", "Income", "Expenses")

DEFAULT_ACCOUNTS = (
    ("Cash in Hand", "Assets", Side.Debit, True),
    ("Bank Account", "Assets", Side.Debit, True),
    ("Capital Account", "Equity", Side.Credit, False),
    ("Tuition Fees", "Income", Side.Credit, False),
    ("Late Fees", "Income", Side.Credit, False),
    ("Salaries", "Expenses", Side.Debit, False),
    ("Rent", "Expenses", Side.Debit, False),
    ("Utilities", "Expenses", Side.Debit, False),
)


class Chart(BaseModel, SaveLoadMixin):
    """Chart of accounts with referential checks between accounts and categories."""

    model_config = ConfigDict(extra="forbid")

    categories: list[AccountCategory] = []
    accounts: list[Account] = []

    @model_validator(mode="after")
    def _check_references(self):
        self.assert_category_references_are_valid()
        return self

    @classmethod
    def default(cls) -> "Chart":
        """Chart with the standard groups and accounts of a school."""
        chart = cls()
        groups = {name: chart.create_category(name) for name in DEFAULT_CATEGORIES}
        for name, group, side, is_cash in DEFAULT_ACCOUNTS:
            chart.create_account(
                name, groups[group].id, opening_balance_type=side, is_cash=is_cash
            )
        return chart

    def assert_category_references_are_valid(self):
        category_ids = self.category_ids
        for account in self.accounts:
            if account.category_id not in category_ids:
                raise DaybookError(
                    f"Account {account.name} refers to missing category {account.category_id}."
                )

    @property
    def category_ids(self) -> set[str]:
        return {c.id for c in self.categories}

    @property
    def account_ids(self) -> set[str]:
        return {a.id for a in self.accounts}

    @property
    def cash_account_ids(self) -> set[str]:
        return {a.id for a in self.accounts if a.is_cash}

    def category(self, category_id: str) -> AccountCategory:
        for category in self.categories:
            if category.id == category_id:
                return category
        raise NotFound(f"Category {category_id} not found.")

    def account(self, account_id: str) -> Account:
        for account in self.accounts:
            if account.id == account_id:
                return account
        raise NotFound(f"Account {account_id} not found.")

    def find_category_by_name(self, name: str) -> AccountCategory | None:
        return next((c for c in self.categories if c.name == name), None)

    def find_account_by_name(self, name: str) -> Account | None:
        key = name.strip().lower()
        return next((a for a in self.accounts if a.name.strip().lower() == key), None)

    def student_account(self, student_id: str) -> Account | None:
        return next((a for a in self.accounts if a.student_id == student_id), None)

    def accounts_in(self, category_id: str) -> list[Account]:
        return [a for a in self.accounts if a.category_id == category_id]

    # Categories

    def create_category(self, name: str, is_system: bool = False) -> AccountCategory:
        category = AccountCategory(name=name, is_system=is_system)
        self.categories.append(category)
        return category

    def rename_category(self, category_id: str, name: str, by_class: bool = False):
        category = self.category(category_id)
        if category.is_system and not by_class:
            raise Immutable(f"Category {category.name} follows its class name.")
        category.name = name
        return self

    def delete_category(self, category_id: str):
        category = self.category(category_id)
        if used_by := self.accounts_in(category_id):
            raise CategoryInUse(
                f"Category {category.name} is used by {len(used_by)} account(s)."
            )
        if category.is_system:
            raise Immutable(f"Category {category.name} is removed with its class.")
        self.categories.remove(category)
        return self

    # Accounts

    def create_account(
        self,
        name: str,
        category_id: str,
        opening_balance: Numeric = 0,
        opening_balance_type: Side = Side.Debit,
        **fields,
    ) -> Account:
        self.category(category_id)
        account = Account(
            name=name,
            category_id=category_id,
            opening_balance=opening_balance,
            opening_balance_type=opening_balance_type,
            **fields,
        )
        self.accounts.append(account)
        return account

    def edit_account(self, account_id: str, **changes) -> Account:
        account = self.account(account_id)
        if account.is_student_account:
            raise Immutable(f"Account {account.name} is managed with its student.")
        if forbidden := PROTECTED_FIELDS.intersection(changes):
            raise Immutable(f"Cannot change {sorted(forbidden)}.")
        if "category_id" in changes:
            self.category(changes["category_id"])
        edited = Account.model_validate(account.model_dump() | changes)
        self.accounts[self.accounts.index(account)] = edited
        return edited

    def delete_account(self, account_id: str):
        account = self.account(account_id)
        if account.is_student_account:
            raise Immutable(f"Account {account.name} is removed with its student.")
        self.accounts.remove(account)
        return self

    # System hooks driven by the roster

    def ensure_class_category(self, class_name: str) -> AccountCategory:
        for category in self.categories:
            if category.is_system and category.name == class_name:
                return category
        logger.debug("Creating system category %s", class_name)
        return self.create_category(class_name, is_system=True)

    def rename_class_category(self, old_name: str, new_name: str):
        for category in self.categories:
            if category.is_system and category.name == old_name:
                self.rename_category(category.id, new_name, by_class=True)
        return self

    def drop_class_category_if_orphaned(self, class_name: str) -> bool:
        for category in list(self.categories):
            if category.is_system and category.name == class_name:
                if self.accounts_in(category.id):
                    return False
                self.categories.remove(category)
                return True
        return False

    def open_student_account(self, student_id: str, name: str, class_name: str, **fields):
        category = self.ensure_class_category(class_name)
        account = Account(
            name=name,
            category_id=category.id,
            is_student_account=True,
            student_id=student_id,
            **fields,
        )
        self.accounts.append(account)
        return account

    def rename_student_account(self, student_id: str, name: str):
        if account := self.student_account(student_id):
            account.name = name
        return self

    def move_student_account(self, student_id: str, class_name: str):
        if account := self.student_account(student_id):
            account.category_id = self.ensure_class_category(class_name).id
        return self

    def close_student_accounts(self, student_ids: Iterable[str]) -> list[str]:
        """Remove accounts of the students, return removed account ids."""
        student_ids = set(student_ids)
        removed = [a.id for a in self.accounts if a.student_id in student_ids]
        self.accounts = [a for a in self.accounts if a.student_id not in student_ids]
        return removed
