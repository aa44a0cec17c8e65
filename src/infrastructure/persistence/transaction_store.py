from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from typing import Any

from domain.errors import TransactionNotFoundError
from domain.models import Transaction, coerce_amount, coerce_date, coerce_description, coerce_type

logger = logging.getLogger(__name__)


class TransactionStore(ABC):
    """Storage contract for transactions. Listings are newest first."""

    @abstractmethod
    def list_all(self) -> list[Transaction]:
        raise NotImplementedError

    @abstractmethod
    def add(
        self,
        type: Any,
        amount: Any,
        description: Any = "",
        date: Any = None,
    ) -> Transaction:
        raise NotImplementedError

    @abstractmethod
    def remove(self, transaction_id: str) -> Transaction:
        raise NotImplementedError

    def recent(self, limit: int) -> list[Transaction]:
        return self.list_all()[: max(limit, 0)]


class InMemoryTransactionStore(TransactionStore):
    """Process-local store; contents are lost on restart."""

    def __init__(self, transactions: list[Transaction] | None = None) -> None:
        self._transactions: list[Transaction] = list(transactions or [])

    def list_all(self) -> list[Transaction]:
        return list(self._transactions)

    def add(
        self,
        type: Any,
        amount: Any,
        description: Any = "",
        date: Any = None,
    ) -> Transaction:
        # Validate everything before touching the list.
        txn = Transaction(
            id=str(uuid.uuid4()),
            type=coerce_type(type),
            amount=coerce_amount(amount),
            description=coerce_description(description),
            date=coerce_date(date) or _today(),
        )
        self._transactions.insert(0, txn)
        logger.info("Transaction added id=%s type=%s amount=%s count=%d", txn.id, txn.type.value, txn.amount, len(self._transactions))
        return txn

    def remove(self, transaction_id: str) -> Transaction:
        for idx, txn in enumerate(self._transactions):
            if txn.id == transaction_id:
                del self._transactions[idx]
                logger.info("Transaction removed id=%s count=%d", transaction_id, len(self._transactions))
                return txn
        logger.info("Transaction remove miss id=%s", transaction_id)
        raise TransactionNotFoundError(transaction_id)


def _today() -> date:
    return datetime.now(timezone.utc).date()
