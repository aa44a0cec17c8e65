from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any

from domain.errors import TransactionValidationError

CENTS = Decimal("0.01")
DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y", "%m-%d-%Y")


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


@dataclass(frozen=True)
class Transaction:
    id: str
    type: TransactionType
    amount: Decimal
    description: str = ""
    date: dt.date | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "amount": float(self.amount),
            "description": self.description,
            "date": self.date.isoformat() if self.date else None,
        }


@dataclass(frozen=True)
class Summary:
    total_income: Decimal
    total_expense: Decimal
    net_cash_flow: Decimal
    balance: Decimal
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalIncome": float(self.total_income),
            "totalExpense": float(self.total_expense),
            "netCashFlow": float(self.net_cash_flow),
            "balance": float(self.balance),
            "count": self.count,
        }


def coerce_type(value: Any) -> TransactionType:
    if isinstance(value, TransactionType):
        return value
    if isinstance(value, str):
        try:
            return TransactionType(value.strip().lower())
        except ValueError:
            pass
    raise TransactionValidationError('type must be "income" or "expense"')


def coerce_amount(value: Any) -> Decimal:
    """Parse a positive money amount, rounded half-up to cents."""
    message = "amount must be a positive number"
    if value is None or isinstance(value, bool):
        raise TransactionValidationError(message)
    try:
        amount = Decimal(str(value).strip())
        if not amount.is_finite():
            raise TransactionValidationError(message)
        amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise TransactionValidationError(message) from None
    # 0.001 rounds to 0.00, which is not a positive amount.
    if amount <= 0:
        raise TransactionValidationError(message)
    return amount


def coerce_date(value: Any) -> dt.date | None:
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        for fmt in DATE_FORMATS:
            try:
                return dt.datetime.strptime(text, fmt).date()
            except ValueError:
                continue
    raise TransactionValidationError("date must be a calendar date in YYYY-MM-DD format")


def coerce_description(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()
