from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

from application.model_selector import ModelSelector
from application.summary import compute_summary
from domain.errors import ProviderNotConfiguredError
from domain.models import Summary
from domain.schemas import AnalysisResult, normalize_horizon_days
from infrastructure.persistence.transaction_store import TransactionStore
from llm.analysis_llm import MAX_PROMPT_TRANSACTIONS, AnalysisLLM

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisOutcome:
    horizon_days: int
    summary: Summary
    analysis: AnalysisResult
    raw: str
    model_used: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "horizonDays": self.horizon_days,
            "summary": self.summary.to_dict(),
            "analysis": self.analysis.model_dump(by_alias=True),
            "raw": self.raw,
            "modelUsed": self.model_used,
        }


class AnalysisService:
    """Runs a cash-shortage risk analysis over the current store contents."""

    def __init__(
        self,
        store: TransactionStore,
        selector: ModelSelector | None,
        analysis_llm: AnalysisLLM | None = None,
    ):
        self._store = store
        self._selector = selector
        self._analysis_llm = analysis_llm or AnalysisLLM()

    def analyze(self, horizon_days: Any = None) -> AnalysisOutcome:
        if self._selector is None:
            raise ProviderNotConfiguredError("GEMINI_API_KEY not set. Add it to your .env file to enable analysis.")

        horizon = normalize_horizon_days(horizon_days)
        t0 = time.perf_counter()
        transactions = self._store.recent(MAX_PROMPT_TRANSACTIONS)
        summary = compute_summary(self._store.list_all())
        logger.info("AnalysisService analyze start horizon_days=%d transactions=%d", horizon, summary.count)

        prompt = self._analysis_llm.build_prompt(horizon, summary, transactions)
        text, model = self._selector.generate(prompt)
        analysis = self._analysis_llm.parse_response(text)

        logger.info("AnalysisService analyze complete in %.2fs model=%s parsed=%s", time.perf_counter() - t0, model, analysis.parsed)
        return AnalysisOutcome(
            horizon_days=horizon,
            summary=summary,
            analysis=analysis,
            raw=text,
            model_used=model,
        )
