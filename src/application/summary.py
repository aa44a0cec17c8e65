from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from domain.models import Summary, Transaction, TransactionType


def compute_summary(transactions: Iterable[Transaction]) -> Summary:
    income = Decimal("0")
    expense = Decimal("0")
    count = 0
    for txn in transactions:
        count += 1
        if txn.type == TransactionType.INCOME:
            income += txn.amount
        elif txn.type == TransactionType.EXPENSE:
            expense += txn.amount

    net = income - expense
    return Summary(
        total_income=income,
        total_expense=expense,
        net_cash_flow=net,
        balance=net,
        count=count,
    )
