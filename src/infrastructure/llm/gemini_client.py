from __future__ import annotations

import http.client
import json
import logging
import socket
import time
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

from domain.errors import ProviderError
from infrastructure.config import DEFAULT_BASE_URL

logger = logging.getLogger(__name__)

GENERATE_METHOD = "generateContent"


class GeminiClient:
    """Thin adapter over the Generative Language REST API (models.list and models.generateContent)."""

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._api_key = api_key
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout_seconds = timeout_seconds or 60.0

    def list_models(self) -> list[str]:
        started = time.perf_counter()
        models: list[str] = []
        page_token: str | None = None
        while True:
            query = {"pageSize": "1000"}
            if page_token:
                query["pageToken"] = page_token
            body = self._request("GET", f"/models?{urllib.parse.urlencode(query)}")
            for item in body.get("models") or []:
                if not isinstance(item, dict):
                    continue
                if GENERATE_METHOD not in (item.get("supportedGenerationMethods") or []):
                    continue
                name = str(item.get("name") or "")
                if name.startswith("models/"):
                    name = name[len("models/"):]
                if name:
                    models.append(name)
            page_token = body.get("nextPageToken")
            if not page_token:
                break
        logger.info("GeminiClient list_models complete in %.2fs models=%d", time.perf_counter() - started, len(models))
        return models

    def generate(self, model: str, prompt: str) -> str:
        started = time.perf_counter()
        payload = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        logger.info(
            "GeminiClient generate start model=%s prompt_chars=%d timeout=%.1fs",
            model,
            len(prompt),
            self.timeout_seconds,
        )
        body = self._request("POST", f"/models/{urllib.parse.quote(model, safe='-._')}:{GENERATE_METHOD}", payload)
        text = _extract_text(body)
        logger.info("GeminiClient generate complete model=%s in %.2fs response_chars=%d", model, time.perf_counter() - started, len(text))
        return text

    def _request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        req = urllib.request.Request(
            url=f"{self.base_url}{path}",
            data=data,
            headers={"Content-Type": "application/json", "x-goog-api-key": self._api_key},
            method=method,
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            raise ProviderError(f"HTTP {exc.code}: {_error_message(exc)}") from exc
        except (socket.timeout, TimeoutError, urllib.error.URLError) as exc:
            raise ProviderError(f"Request to provider failed: {getattr(exc, 'reason', exc)}") from exc
        except (OSError, http.client.HTTPException) as exc:
            # Raised while reading the body, e.g. connection reset or IncompleteRead.
            raise ProviderError(f"Reading provider response failed: {exc!r}") from exc
        except UnicodeDecodeError as exc:
            raise ProviderError(f"Provider returned a non UTF-8 body: {exc}") from exc

        try:
            body = json.loads(raw) if raw else {}
        except json.JSONDecodeError as exc:
            raise ProviderError(f"Provider returned invalid JSON: {exc}") from exc
        if not isinstance(body, dict):
            raise ProviderError("Provider returned an unexpected payload")
        return body


def _error_message(exc: urllib.error.HTTPError) -> str:
    try:
        body = json.loads(exc.read().decode("utf-8"))
    except Exception:
        return str(exc.reason or "request failed")
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return str(exc.reason or "request failed")


def _extract_text(body: dict[str, Any]) -> str:
    feedback = body.get("promptFeedback") or {}
    if isinstance(feedback, dict) and feedback.get("blockReason"):
        raise ProviderError(f"Prompt blocked: {feedback['blockReason']}")

    candidates = body.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        raise ProviderError("Provider response contained no candidates")

    parts = (candidates[0].get("content") or {}).get("parts") or []
    text = "".join(str(part.get("text") or "") for part in parts if isinstance(part, dict))
    if not text.strip():
        reason = candidates[0].get("finishReason") or "empty response"
        raise ProviderError(f"Provider returned no text ({reason})")
    return text
