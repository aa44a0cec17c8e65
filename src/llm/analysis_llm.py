from __future__ import annotations

import json
import logging
from typing import Any, Dict, Sequence

from pydantic import ValidationError

from domain.models import Summary, Transaction
from domain.schemas import AnalysisResult

logger = logging.getLogger(__name__)

MAX_PROMPT_TRANSACTIONS = 50

OUTPUT_SHAPE: Dict[str, Any] = {
    "summary": "1-2 sentence overview",
    "shortageRisk": {
        "riskLevel": "Low | Medium | High",
        "daysUntilShortage": "number or null",
        "reason": "why",
    },
    "cashRunwayDays": "number or null",
    "actions": ["bullet 1", "bullet 2", "bullet 3?"],
    "insights": ["short observation 1", "short observation 2"],
}


class AnalysisLLM:
    """Builds the cash-shortage risk prompt and parses the model's reply into an AnalysisResult."""

    def build_prompt(self, horizon_days: int, summary: Summary, transactions: Sequence[Transaction]) -> str:
        recent = list(transactions)[:MAX_PROMPT_TRANSACTIONS]
        prompt_payload: Dict[str, Any] = {
            "role": "You are CashWise, a concise cash-flow advisor for small businesses.",
            "task": f"Assess whether the business risks running short on cash within the next {horizon_days} days.",
            "horizon_days": horizon_days,
            "summary": summary.to_dict(),
            "recent_transactions": [txn.to_dict() for txn in recent],
            "recent_transactions_note": f"Most recent first, at most {MAX_PROMPT_TRANSACTIONS}.",
            "output_contract": OUTPUT_SHAPE,
            "rules": [
                "Return valid JSON only, no markdown.",
                "Follow the output_contract shape exactly.",
                "Use null for day counts you cannot estimate.",
                "Keep actions concrete and conservative.",
            ],
        }
        return json.dumps(prompt_payload, indent=2, default=str)

    def parse_response(self, text: str) -> AnalysisResult:
        payload = extract_json_object(text)
        if payload is None:
            logger.info("AnalysisLLM no JSON object in response; returning raw text chars=%d", len(text or ""))
            return AnalysisResult.unparsed(text)

        payload.pop("raw", None)
        try:
            result = AnalysisResult.model_validate(payload)
        except ValidationError:
            logger.info("AnalysisLLM response failed validation; returning raw text")
            return AnalysisResult.unparsed(text)
        logger.info("AnalysisLLM accepted model JSON response")
        return result


def extract_json_object(text: str | None) -> dict[str, Any] | None:
    """Return the first decodable JSON object embedded in `text`, ignoring surrounding prose."""
    if not text:
        return None
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(value, dict):
            return value
        start = text.find("{", start + 1)
    return None
