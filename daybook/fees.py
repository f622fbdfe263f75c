"""Fee heads, class fee assignments, concessions and payments."""

from datetime import date
from decimal import Decimal
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .base import Amount, DaybookError, NotFound, Numeric, new_id, to_amount
from .roster import Student


class FeeHead(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id)
    name: str


class ClassFee(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id)
    class_id: str
    fee_head_id: str
    amount: Amount

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, value):
        amount = to_amount(value)
        if amount <= 0:
            raise ValueError("Fee amount must be positive.")
        return amount


class FeeConcession(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id)
    student_id: str
    class_fee_id: str
    concession_amount: Amount

    @field_validator("concession_amount", mode="before")
    @classmethod
    def _amount(cls, value):
        return to_amount(value)


class FeePayment(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id)
    student_id: str
    class_fee_id: str
    amount_paid: Amount
    payment_date: date
    remarks: str = ""

    @field_validator("amount_paid", mode="before")
    @classmethod
    def _amount(cls, value):
        amount = to_amount(value)
        if amount <= 0:
            raise ValueError("Payment amount must be positive.")
        return amount


class Due(BaseModel):
    """What a student owes under one class fee."""

    class_fee_id: str
    fee_head: str
    amount: Amount
    concession: Amount
    paid: Amount

    @property
    def balance(self) -> Amount:
        return self.amount - self.concession - self.paid


class Fees(BaseModel):
    model_config = ConfigDict(extra="forbid")

    fee_heads: list[FeeHead] = []
    class_fees: list[ClassFee] = []
    concessions: list[FeeConcession] = []
    payments: list[FeePayment] = []

    def fee_head(self, fee_head_id: str) -> FeeHead:
        for head in self.fee_heads:
            if head.id == fee_head_id:
                return head
        raise NotFound(f"Fee head {fee_head_id} not found.")

    def class_fee(self, class_fee_id: str) -> ClassFee:
        for class_fee in self.class_fees:
            if class_fee.id == class_fee_id:
                return class_fee
        raise NotFound(f"Class fee {class_fee_id} not found.")

    def payment(self, payment_id: str) -> FeePayment:
        for payment in self.payments:
            if payment.id == payment_id:
                return payment
        raise NotFound(f"Fee payment {payment_id} not found.")

    def add_fee_head(self, name: str) -> FeeHead:
        head = FeeHead(name=name)
        self.fee_heads.append(head)
        return head

    def rename_fee_head(self, fee_head_id: str, name: str) -> FeeHead:
        head = self.fee_head(fee_head_id)
        head.name = name
        return head

    def delete_fee_head(self, fee_head_id: str):
        head = self.fee_head(fee_head_id)
        if any(cf.fee_head_id == fee_head_id for cf in self.class_fees):
            raise DaybookError(f"Fee head {head.name} is assigned to a class.")
        self.fee_heads.remove(head)
        return self

    def assign(self, class_id: str, fee_head_id: str, amount: Numeric) -> ClassFee:
        self.fee_head(fee_head_id)
        if any(cf.class_id == class_id and cf.fee_head_id == fee_head_id for cf in self.class_fees):
            raise DaybookError("This fee head is already assigned to the class.")
        class_fee = ClassFee(class_id=class_id, fee_head_id=fee_head_id, amount=amount)
        self.class_fees.append(class_fee)
        return class_fee

    def unassign(self, class_fee_id: str):
        self.class_fees.remove(self.class_fee(class_fee_id))
        return self

    def set_concession(self, student_id: str, class_fee_id: str, amount: Numeric):
        """Set concession for a student, a zero amount removes it."""
        self.class_fee(class_fee_id)
        amount = to_amount(amount)
        self.concessions = [
            c
            for c in self.concessions
            if not (c.student_id == student_id and c.class_fee_id == class_fee_id)
        ]
        if amount > 0:
            self.concessions.append(
                FeeConcession(
                    student_id=student_id, class_fee_id=class_fee_id, concession_amount=amount
                )
            )
        return self

    def add_payment(
        self, student: Student, class_fee_id: str, amount: Numeric, on: date, remarks: str = ""
    ) -> FeePayment:
        class_fee = self.class_fee(class_fee_id)
        if class_fee.class_id != student.class_id:
            raise DaybookError(f"Fee {class_fee_id} is not assigned to the student's class.")
        payment = FeePayment(
            student_id=student.id,
            class_fee_id=class_fee_id,
            amount_paid=amount,
            payment_date=on,
            remarks=remarks,
        )
        self.payments.append(payment)
        return payment

    def remove_payments(self, payment_ids: Iterable[str]) -> list[str]:
        ids = set(payment_ids)
        removed = [p.id for p in self.payments if p.id in ids]
        self.payments = [p for p in self.payments if p.id not in ids]
        return removed

    def forget_students(self, student_ids: Iterable[str]) -> list[str]:
        """Drop concessions and payments of the students, return removed payment ids."""
        ids = set(student_ids)
        self.concessions = [c for c in self.concessions if c.student_id not in ids]
        return self.remove_payments(p.id for p in self.payments if p.student_id in ids)

    def forget_class(self, class_id: str):
        dropped = {cf.id for cf in self.class_fees if cf.class_id == class_id}
        self.class_fees = [cf for cf in self.class_fees if cf.id not in dropped]
        self.concessions = [c for c in self.concessions if c.class_fee_id not in dropped]
        return self

    def dues(self, student: Student) -> list[Due]:
        result = []
        for class_fee in self.class_fees:
            if class_fee.class_id != student.class_id:
                continue
            concession = sum(
                (
                    c.concession_amount
                    for c in self.concessions
                    if c.student_id == student.id and c.class_fee_id == class_fee.id
                ),
                Decimal(0),
            )
            paid = sum(
                (
                    p.amount_paid
                    for p in self.payments
                    if p.student_id == student.id and p.class_fee_id == class_fee.id
                ),
                Decimal(0),
            )
            result.append(
                Due(
                    class_fee_id=class_fee.id,
                    fee_head=self.fee_head(class_fee.fee_head_id).name,
                    amount=class_fee.amount,
                    concession=concession,
                    paid=paid,
                )
            )
        return result
