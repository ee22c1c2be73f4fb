from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from agents.aggregator import TelecomAggregator
from agents.intent_parser import TelecomIntentParser
from agents.llm_runtime import LLMRuntime
from agents.orchestrator import TelecomOrchestrator
from api.middleware.logging import RequestLoggingMiddleware
from api.middleware.rate_limiting import RateLimitMiddleware
from api.routers import telecom, webhooks
from compliance.audit_logger import AuditLogger
from logging_setup import configure_logging
from memory.transaction_store import JsonFileTransactionStore
from memory.wallet import InMemoryWalletGateway
from providers.base import (
    MeterVerificationError,
    ProviderNotFoundError,
    TelecomError,
    TransactionNotFoundError,
    WebhookProcessingError,
)
from providers.registry import ProviderRegistry
from settings import SETTINGS, Settings

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    ProviderNotFoundError: 404,
    TransactionNotFoundError: 404,
    MeterVerificationError: 400,
    WebhookProcessingError: 400,
}


def build_orchestrator(settings: Settings) -> TelecomOrchestrator:
    registry = ProviderRegistry.from_settings(settings)
    aggregator = TelecomAggregator(registry, settings, AuditLogger(settings.audit_log_path))
    parser = TelecomIntentParser(llm=LLMRuntime(settings=settings))
    return TelecomOrchestrator(
        aggregator=aggregator,
        parser=parser,
        wallet=InMemoryWalletGateway(settings),
        store=JsonFileTransactionStore(settings.transaction_store_path),
        settings=settings,
    )


def create_app(settings: Settings | None = None, orchestrator: TelecomOrchestrator | None = None) -> FastAPI:
    settings = settings or SETTINGS
    configure_logging(settings.log_level)
    app = FastAPI(title="Prepaid Utility Purchase Service", version="0.1.0", debug=settings.debug)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RateLimitMiddleware, requests_per_minute=settings.rate_limit_per_minute)
    app.state.settings = settings
    app.state.orchestrator = orchestrator or build_orchestrator(settings)

    @app.exception_handler(TelecomError)
    async def telecom_error_handler(request: Request, exc: TelecomError):
        status_code = next((code for cls, code in ERROR_STATUS_CODES.items() if isinstance(exc, cls)), 502)
        logger.warning(
            "telecom_error",
            extra={"path": request.url.path, "error_type": type(exc).__name__, "error": str(exc)},
        )
        return JSONResponse({"status": exc.status, "message": str(exc)}, status_code=status_code)

    api_prefix = "/api/v1"
    app.include_router(telecom.router, prefix=api_prefix)
    app.include_router(webhooks.router, prefix=api_prefix)

    @app.get("/health")
    async def health():
        orch: TelecomOrchestrator = app.state.orchestrator
        stats = orch.aggregator.provider_stats()
        return {
            "ok": True,
            "service": "prepaid-utility-purchase",
            "llm_provider": orch.parser.llm.provider,
            "llm_runtime_available": orch.parser.llm.available(),
            "active_providers": stats["active_providers"],
        }

    return app
