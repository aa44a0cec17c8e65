from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from application.analysis import AnalysisService
from application.model_selector import ModelSelector
from application.summary import compute_summary
from domain.errors import (
    AllModelsFailedError,
    ProviderNotConfiguredError,
    TransactionNotFoundError,
    TransactionValidationError,
)
from domain.schemas import AnalyzeRequest, TransactionCreate
from infrastructure.config import Settings
from infrastructure.llm.gemini_client import GeminiClient
from infrastructure.persistence.transaction_store import InMemoryTransactionStore, TransactionStore

logger = logging.getLogger(__name__)


def build_selector(settings: Settings) -> ModelSelector | None:
    if not settings.gemini_configured:
        return None
    client = GeminiClient(
        api_key=settings.gemini_api_key or "",
        base_url=settings.gemini_base_url,
        timeout_seconds=settings.gemini_timeout_seconds,
    )
    return ModelSelector(client, settings.fallback_models, settings.preferred_model_prefix)


def get_store(request: Request) -> TransactionStore:
    return request.app.state.store


def get_selector(request: Request) -> ModelSelector | None:
    return request.app.state.selector


def get_analysis_service(request: Request) -> AnalysisService:
    return request.app.state.analysis_service


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "invalid request body"
    first = errors[0]
    if first.get("type") == "missing" and tuple(first.get("loc", ())) == ("body",):
        return "request body must be a JSON object"
    if first.get("type") == "json_invalid":
        return "request body must be valid JSON"
    message = str(first.get("msg") or "invalid request body")
    return message.removeprefix("Value error, ")


def create_app(
    settings: Settings | None = None,
    store: TransactionStore | None = None,
    selector: ModelSelector | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    store = store if store is not None else InMemoryTransactionStore()
    if selector is None:
        selector = build_selector(settings)
    logger.info("CashWise Gemini API key loaded: %s", "YES" if selector is not None else "NO")

    app = FastAPI(title="CashWise API")
    app.state.settings = settings
    app.state.store = store
    app.state.selector = selector
    app.state.analysis_service = AnalysisService(store=store, selector=selector)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    def handle_request_validation(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, _validation_message(exc))

    @app.exception_handler(TransactionValidationError)
    def handle_transaction_validation(_request: Request, exc: TransactionValidationError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(TransactionNotFoundError)
    def handle_not_found(_request: Request, _exc: TransactionNotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, "Transaction not found")

    @app.exception_handler(ProviderNotConfiguredError)
    def handle_not_configured(_request: Request, exc: ProviderNotConfiguredError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(AllModelsFailedError)
    def handle_all_models_failed(_request: Request, exc: AllModelsFailedError) -> JSONResponse:
        logger.error("Analysis failed: %s", exc)
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to generate analysis - no available models",
            details=str(exc),
            attemptedModels=exc.attempted_models,
            suggestion="Visit /api/models to see available models for your API key, or check your API key permissions",
        )

    @app.get("/api/health")
    def health(selector: Optional[ModelSelector] = Depends(get_selector)) -> dict:
        return {
            "status": "ok",
            "message": "CashWise API running",
            "geminiConfigured": selector is not None,
        }

    @app.get("/api/transactions")
    def list_transactions(store: TransactionStore = Depends(get_store)) -> dict:
        return {"transactions": [txn.to_dict() for txn in store.list_all()]}

    @app.post("/api/transactions", status_code=status.HTTP_201_CREATED)
    def add_transaction(payload: TransactionCreate, store: TransactionStore = Depends(get_store)) -> dict:
        txn = store.add(
            type=payload.type,
            amount=payload.amount,
            description=payload.description,
            date=payload.date,
        )
        return {"transaction": txn.to_dict(), "summary": compute_summary(store.list_all()).to_dict()}

    @app.delete("/api/transactions/{transaction_id}")
    def delete_transaction(transaction_id: str, store: TransactionStore = Depends(get_store)) -> dict:
        store.remove(transaction_id)
        return {"deleted": transaction_id, "summary": compute_summary(store.list_all()).to_dict()}

    @app.get("/api/summary")
    def summary(store: TransactionStore = Depends(get_store)) -> dict:
        return compute_summary(store.list_all()).to_dict()

    @app.get("/api/models")
    def list_models(selector: Optional[ModelSelector] = Depends(get_selector)) -> dict:
        if selector is None:
            raise ProviderNotConfiguredError("GEMINI_API_KEY not set")
        available = selector.available_models()
        return {
            "availableModels": available,
            "currentModel": selector.current_model,
            "note": (
                "These are the models available for your API key"
                if available
                else "Could not fetch models. Check your API key permissions."
            ),
        }

    @app.post("/api/analyze")
    def analyze(
        payload: Optional[AnalyzeRequest] = None,
        service: AnalysisService = Depends(get_analysis_service),
    ) -> dict:
        horizon = payload.horizon_days if payload is not None else None
        return service.analyze(horizon).to_dict()

    return app


app = create_app()
