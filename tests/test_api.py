from __future__ import annotations

import json
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from application.model_selector import ModelSelector
from domain.errors import ProviderError
from infrastructure.config import Settings
from infrastructure.llm.gemini_client import GeminiClient
from infrastructure.persistence.transaction_store import InMemoryTransactionStore
from interface.api import create_app


class _StubProvider:
    def __init__(self, models: list[str], working: set[str], response: str = '{"summary": "Stable"}'):
        self._models = models
        self._working = working
        self._response = response
        self.calls: list[str] = []

    def list_models(self) -> list[str]:
        return list(self._models)

    def generate(self, model: str, prompt: str) -> str:
        self.calls.append(model)
        if model not in self._working:
            raise ProviderError(f"HTTP 429: quota exceeded for {model}")
        return self._response


def _unconfigured_settings() -> Settings:
    return Settings(gemini_api_key=None)


class TransactionApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryTransactionStore()
        self.client = TestClient(create_app(settings=_unconfigured_settings(), store=self.store))

    def test_health(self) -> None:
        res = self.client.get("/api/health")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json(), {"status": "ok", "message": "CashWise API running", "geminiConfigured": False})

    def test_add_then_summary(self) -> None:
        res = self.client.post(
            "/api/transactions",
            json={"type": "income", "amount": 100, "description": "Invoice", "date": "2024-01-01"},
        )

        self.assertEqual(res.status_code, 201)
        body = res.json()
        self.assertEqual(body["transaction"]["type"], "income")
        self.assertEqual(body["transaction"]["amount"], 100.0)
        self.assertEqual(body["transaction"]["date"], "2024-01-01")
        self.assertEqual(body["summary"]["count"], 1)

        summary = self.client.get("/api/summary").json()
        self.assertEqual(summary["totalIncome"], 100)
        self.assertEqual(summary["totalExpense"], 0)
        self.assertEqual(summary["netCashFlow"], 100)
        self.assertEqual(summary["balance"], 100)
        self.assertEqual(summary["count"], 1)

    def test_net_cash_flow_after_income_and_expense(self) -> None:
        self.client.post("/api/transactions", json={"type": "income", "amount": 100})
        self.client.post("/api/transactions", json={"type": "expense", "amount": 40})

        self.assertEqual(self.client.get("/api/summary").json()["netCashFlow"], 60)

    def test_list_transactions_newest_first(self) -> None:
        self.client.post("/api/transactions", json={"type": "income", "amount": 1, "description": "first"})
        self.client.post("/api/transactions", json={"type": "expense", "amount": 2, "description": "second"})

        txns = self.client.get("/api/transactions").json()["transactions"]

        self.assertEqual([t["description"] for t in txns], ["second", "first"])

    def test_amount_string_is_accepted_and_rounded(self) -> None:
        res = self.client.post("/api/transactions", json={"type": "expense", "amount": "12.345"})

        self.assertEqual(res.status_code, 201)
        self.assertEqual(res.json()["transaction"]["amount"], 12.35)

    def test_invalid_input_returns_400_and_keeps_store(self) -> None:
        cases = [
            ({"type": "transfer", "amount": 10}, 'type must be "income" or "expense"'),
            ({"amount": 10}, 'type must be "income" or "expense"'),
            ({"type": "income", "amount": 0}, "amount must be a positive number"),
            ({"type": "income", "amount": -1}, "amount must be a positive number"),
            ({"type": "income", "amount": "ten"}, "amount must be a positive number"),
            ({"type": "income"}, "amount must be a positive number"),
            ({"type": "income", "amount": 5, "date": "yesterday"}, "date must be a calendar date in YYYY-MM-DD format"),
        ]
        for payload, message in cases:
            with self.subTest(payload=payload):
                res = self.client.post("/api/transactions", json=payload)
                self.assertEqual(res.status_code, 400)
                self.assertEqual(res.json()["error"], message)
        self.assertEqual(self.store.list_all(), [])

    def test_missing_body_returns_400(self) -> None:
        res = self.client.post("/api/transactions")

        self.assertEqual(res.status_code, 400)
        self.assertIn("error", res.json())

    def test_delete_transaction(self) -> None:
        txn_id = self.client.post("/api/transactions", json={"type": "income", "amount": 10}).json()["transaction"]["id"]

        res = self.client.delete(f"/api/transactions/{txn_id}")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["deleted"], txn_id)
        self.assertEqual(res.json()["summary"]["count"], 0)

    def test_delete_missing_returns_404_and_keeps_store(self) -> None:
        self.client.post("/api/transactions", json={"type": "income", "amount": 10})

        res = self.client.delete("/api/transactions/does-not-exist")

        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json(), {"error": "Transaction not found"})
        self.assertEqual(len(self.store.list_all()), 1)

    def test_analyze_without_key_returns_400(self) -> None:
        self.client.post("/api/transactions", json={"type": "income", "amount": 10})
        before = self.store.list_all()

        res = self.client.post("/api/analyze", json={"horizonDays": 30})

        self.assertEqual(res.status_code, 400)
        self.assertIn("GEMINI_API_KEY", res.json()["error"])
        self.assertEqual(self.store.list_all(), before)

    def test_models_without_key_returns_400(self) -> None:
        res = self.client.get("/api/models")

        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json(), {"error": "GEMINI_API_KEY not set"})


class AnalyzeApiTests(unittest.TestCase):
    def _client(self, provider: _StubProvider) -> TestClient:
        self.selector = ModelSelector(provider, fallback_models=["gemini-1.5-pro"], preferred_prefix="gemma-")
        app = create_app(settings=_unconfigured_settings(), store=InMemoryTransactionStore(), selector=self.selector)
        return TestClient(app)

    def test_model_fallback_and_cached_model(self) -> None:
        provider = _StubProvider(models=["A", "B", "C"], working={"C"})
        client = self._client(provider)
        client.post("/api/transactions", json={"type": "income", "amount": 100})

        res = client.post("/api/analyze", json={"horizonDays": 30})

        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertEqual(body["modelUsed"], "C")
        self.assertEqual(body["horizonDays"], 30)
        self.assertEqual(body["summary"]["totalIncome"], 100)
        self.assertEqual(body["analysis"]["summary"], "Stable")
        self.assertEqual(body["analysis"]["shortageRisk"]["riskLevel"], "unavailable")
        self.assertEqual(provider.calls, ["A", "B", "C"])

        provider.calls.clear()
        second = client.post("/api/analyze", json={})

        self.assertEqual(second.json()["modelUsed"], "C")
        self.assertEqual(provider.calls[0], "C")

    def test_analyze_without_body_uses_default_horizon(self) -> None:
        client = self._client(_StubProvider(models=["A"], working={"A"}))

        res = client.post("/api/analyze")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["horizonDays"], 30)

    def test_analyze_invalid_horizon_uses_default(self) -> None:
        client = self._client(_StubProvider(models=["A"], working={"A"}))

        res = client.post("/api/analyze", json={"horizonDays": "soon"})

        self.assertEqual(res.json()["horizonDays"], 30)

    def test_all_models_failing_returns_500(self) -> None:
        client = self._client(_StubProvider(models=["A", "B"], working=set()))

        res = client.post("/api/analyze", json={"horizonDays": 7})

        self.assertEqual(res.status_code, 500)
        body = res.json()
        self.assertEqual(body["error"], "Failed to generate analysis - no available models")
        self.assertEqual(body["attemptedModels"], ["A", "B"])
        self.assertIn("Tried models: A, B", body["details"])
        self.assertIn("quota exceeded for B", body["details"])

    def test_health_reports_configured(self) -> None:
        client = self._client(_StubProvider(models=[], working=set()))

        self.assertTrue(client.get("/api/health").json()["geminiConfigured"])

    def test_models_endpoint(self) -> None:
        client = self._client(_StubProvider(models=["gemma-3-4b-it", "gemini-1.5-pro"], working=set()))

        body = client.get("/api/models").json()

        self.assertEqual(body["availableModels"], ["gemma-3-4b-it", "gemini-1.5-pro"])
        self.assertEqual(body["currentModel"], "gemini-1.5-pro")
        self.assertEqual(body["note"], "These are the models available for your API key")


class _Response:
    def __init__(self, body: dict | None = None, error: BaseException | None = None):
        self._body = body or {}
        self._error = error

    def read(self) -> bytes:
        if self._error is not None:
            raise self._error
        return json.dumps(self._body).encode("utf-8")

    def __enter__(self) -> "_Response":
        return self

    def __exit__(self, *exc) -> None:
        return None


def _fake_urlopen(req, timeout=None):
    if "/models?" in req.full_url:
        return _Response({"models": [
            {"name": "models/a", "supportedGenerationMethods": ["generateContent"]},
            {"name": "models/b", "supportedGenerationMethods": ["generateContent"]},
        ]})
    if "/models/a:" in req.full_url:
        return _Response(error=ConnectionResetError("connection reset by peer"))
    return _Response({"candidates": [{"content": {"parts": [{"text": '{"summary": "Recovered"}'}]}}]})


class AnalyzeReadFailureApiTests(unittest.TestCase):
    def setUp(self) -> None:
        client = GeminiClient(api_key="test-key", base_url="https://api.test/v1beta")
        selector = ModelSelector(client, fallback_models=["a"], preferred_prefix="gemma-")
        self.client = TestClient(create_app(settings=_unconfigured_settings(), store=InMemoryTransactionStore(), selector=selector))

    @patch("infrastructure.llm.gemini_client.urllib.request.urlopen", side_effect=_fake_urlopen)
    def test_body_read_failure_moves_on_to_next_model(self, _mock_urlopen) -> None:
        res = self.client.post("/api/analyze", json={"horizonDays": 30})

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["modelUsed"], "b")
        self.assertEqual(res.json()["analysis"]["summary"], "Recovered")

    @patch("infrastructure.llm.gemini_client.urllib.request.urlopen")
    def test_every_read_failing_returns_json_500(self, mock_urlopen) -> None:
        mock_urlopen.return_value = _Response(error=ConnectionResetError("connection reset by peer"))

        res = self.client.post("/api/analyze", json={"horizonDays": 30})

        self.assertEqual(res.status_code, 500)
        body = res.json()
        self.assertEqual(body["attemptedModels"], ["a"])
        self.assertIn("connection reset by peer", body["details"])


if __name__ == "__main__":
    unittest.main()
