from __future__ import annotations

import logging
from typing import Protocol, Sequence

from domain.errors import AllModelsFailedError, ProviderError

logger = logging.getLogger(__name__)

# Name fragments of models that cannot do plain text generation or tend to be quota-limited.
EXCLUDED_MODEL_MARKERS = ("tts", "audio", "image", "embedding", "preview", "exp")


class ModelProvider(Protocol):
    def list_models(self) -> list[str]: ...

    def generate(self, model: str, prompt: str) -> str: ...


class ModelSelector:
    """
    Chooses which provider model to call and falls back through the rest.

    Candidate order:
      1. the model that last succeeded in this process
      2. models from the preferred (smaller, free-tier) family
      3. every other text-capable model
    Discovery failures fall back to a static list.
    """

    def __init__(
        self,
        client: ModelProvider,
        fallback_models: Sequence[str],
        preferred_prefix: str = "gemma-",
    ) -> None:
        self._client = client
        self._fallback_models = list(fallback_models)
        self._preferred_prefix = preferred_prefix
        self.last_working_model: str | None = None

    @property
    def current_model(self) -> str | None:
        if self.last_working_model:
            return self.last_working_model
        return self._fallback_models[0] if self._fallback_models else None

    def available_models(self) -> list[str]:
        try:
            return self._client.list_models()
        except ProviderError as exc:
            logger.warning("ModelSelector discovery failed: %s", exc)
            return []

    def candidates(self) -> list[str]:
        pool = self.available_models()
        if pool:
            logger.info("ModelSelector found %d available models", len(pool))
        else:
            logger.info("ModelSelector using static fallback list models=%d", len(self._fallback_models))
            pool = list(self._fallback_models)
        return self.order_candidates(pool)

    def order_candidates(self, pool: Sequence[str]) -> list[str]:
        pool = list(dict.fromkeys(pool))
        text_models = [m for m in pool if not _is_excluded(m)] or pool

        ordered: list[str] = []
        if self.last_working_model and self.last_working_model in pool:
            ordered.append(self.last_working_model)
        prefix = self._preferred_prefix
        preferred = [m for m in text_models if prefix and m.startswith(prefix)]
        rest = [m for m in text_models if m not in preferred]
        for model in preferred + rest:
            if model not in ordered:
                ordered.append(model)
        return ordered

    def generate(self, prompt: str) -> tuple[str, str]:
        models = self.candidates()
        logger.info("ModelSelector trying %d prioritized models last_working=%s", len(models), self.last_working_model)

        last_error: str | None = None
        attempted: list[str] = []
        for model in models:
            attempted.append(model)
            try:
                text = self._client.generate(model, prompt)
            except ProviderError as exc:
                logger.info("ModelSelector model=%s failed: %s", model, exc)
                last_error = str(exc)
                continue
            logger.info("ModelSelector success model=%s attempts=%d", model, len(attempted))
            self.last_working_model = model
            return text, model

        logger.error("ModelSelector all models failed attempted=%d last_error=%s", len(attempted), last_error)
        raise AllModelsFailedError(attempted, last_error)


def _is_excluded(model: str) -> bool:
    name = model.lower()
    return any(marker in name for marker in EXCLUDED_MODEL_MARKERS)
