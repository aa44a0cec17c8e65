from __future__ import annotations


class CashWiseError(RuntimeError):
    pass


class TransactionValidationError(CashWiseError, ValueError):
    pass


class TransactionNotFoundError(CashWiseError):
    def __init__(self, transaction_id: str):
        super().__init__(transaction_id)
        self.transaction_id = transaction_id

    def __str__(self) -> str:
        return f"Transaction not found: {self.transaction_id}"


class ProviderNotConfiguredError(CashWiseError):
    pass


class ProviderError(CashWiseError):
    """A single provider call failed (network, HTTP status, or unusable payload)."""


class AllModelsFailedError(CashWiseError):
    def __init__(self, attempted_models: list[str], last_error: str | None = None):
        self.attempted_models = list(attempted_models)
        self.last_error = last_error or "Unknown error"
        super().__init__(
            f"Tried models: {', '.join(self.attempted_models) or '(none)'}. Last error: {self.last_error}"
        )
