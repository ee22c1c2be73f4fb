from __future__ import annotations

import os
from dataclasses import dataclass


def _bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _enabled(name: str) -> bool:
    # Provider switches default to on; only an explicit "false" turns one off.
    raw = os.getenv(name)
    if raw is None:
        return True
    return raw.strip().lower() != "false"


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    default_llm_provider: str = os.getenv("DEFAULT_LLM_PROVIDER", "openai")
    default_model: str = os.getenv("DEFAULT_MODEL", "gpt-4o-mini")
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    openai_base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    anthropic_api_key: str = os.getenv("ANTHROPIC_API_KEY", "")
    anthropic_base_url: str = os.getenv("ANTHROPIC_BASE_URL", "https://api.anthropic.com/v1")
    xai_api_key: str = os.getenv("XAI_API_KEY", "")
    xai_base_url: str = os.getenv("XAI_BASE_URL", "https://api.x.ai/v1")
    llm_timeout_seconds: int = _int("LLM_TIMEOUT_SECONDS", 25)

    telecom_enable_vtpass: bool = _enabled("TELECOM_ENABLE_VTPASS")
    telecom_enable_billspay: bool = _enabled("TELECOM_ENABLE_BILLSPAY")
    telecom_enable_vtu: bool = _enabled("TELECOM_ENABLE_VTU")
    telecom_provider_order: str = os.getenv("TELECOM_PROVIDER_ORDER", "vtpass,billspay,vtu")
    telecom_maintenance_providers: str = os.getenv("TELECOM_MAINTENANCE_PROVIDERS", "")
    telecom_provider_timeout_seconds: float = _float("TELECOM_PROVIDER_TIMEOUT_SECONDS", 8.0)

    vtpass_base_url: str = os.getenv("VTPASS_BASE_URL", "https://sandbox.vtpass.com/api")
    vtpass_api_key: str = os.getenv("VTPASS_API_KEY", "")
    vtpass_secret_key: str = os.getenv("VTPASS_SECRET_KEY", "")
    vtpass_public_key: str = os.getenv("VTPASS_PUBLIC_KEY", "")

    billspay_base_url: str = os.getenv("BILLSPAY_BASE_URL", "https://api.billspay.ng/v1")
    billspay_api_key: str = os.getenv("BILLSPAY_API_KEY", "")

    vtu_base_url: str = os.getenv("VTU_BASE_URL", "https://vtu.ng/api/v1")
    vtu_api_key: str = os.getenv("VTU_API_KEY", "")
    vtu_webhook_secret: str = os.getenv("VTU_WEBHOOK_SECRET", "")

    audit_log_path: str = os.getenv("AUDIT_LOG_PATH", "./data/telecom_audit.log.jsonl")
    transaction_store_path: str = os.getenv("TRANSACTION_STORE_PATH", "./data/telecom_transactions.json")
    dev_wallet_balance: float = _float("DEV_WALLET_BALANCE", 10000.0)
    rate_limit_per_minute: int = _int("RATE_LIMIT_PER_MINUTE", 60)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    debug: bool = _bool("DEBUG", True)


SETTINGS = Settings()
