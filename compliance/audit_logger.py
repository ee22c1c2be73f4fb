from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, Optional

from settings import SETTINGS


class AuditLogger:
    """Append-only JSONL trail of provider attempts and webhook callbacks."""

    def __init__(self, path: str | None = None) -> None:
        self.path = path or SETTINGS.audit_log_path
        self._lock = Lock()
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)

    def log_attempt(
        self,
        provider_id: str,
        service_type: str,
        target: str,
        amount: float,
        outcome: str,
        error: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ) -> None:
        self.log_json(
            {
                "event": "provider_attempt",
                "provider": provider_id,
                "service_type": service_type,
                "target": target,
                "amount": amount,
                "outcome": outcome,
                "error": error,
                "transaction_id": transaction_id,
            }
        )

    def log_json(self, payload: Dict[str, Any]) -> None:
        record = {"timestamp": datetime.now(timezone.utc).isoformat(), **payload}
        line = json.dumps(record, ensure_ascii=True, default=str)
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as fh:
                fh.write(line + "\n")
