from __future__ import annotations

import json
import logging
import os
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional

from models.schemas import ResponseStatus, TransactionRecord
from settings import SETTINGS

logger = logging.getLogger(__name__)


class TransactionStore(ABC):
    @abstractmethod
    async def record(self, entry: TransactionRecord) -> TransactionRecord:
        raise NotImplementedError

    @abstractmethod
    async def update_status(self, provider_transaction_id: str, status: ResponseStatus) -> Optional[TransactionRecord]:
        raise NotImplementedError

    @abstractmethod
    async def list_for_user(self, user_id: str, limit: int = 20, offset: int = 0) -> List[TransactionRecord]:
        raise NotImplementedError


class JsonFileTransactionStore(TransactionStore):
    """Transaction history kept in memory and mirrored to a JSON file.

    Pass path="" to keep everything in memory (tests).
    """

    def __init__(self, path: str | None = None) -> None:
        self.path = SETTINGS.transaction_store_path if path is None else path
        self._records: Dict[str, TransactionRecord] = {}
        self._lock = Lock()
        self._load()

    def _load(self) -> None:
        if not self.path or not os.path.exists(self.path):
            return
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                payload = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("transaction_store_load_failed", extra={"path": self.path, "error": repr(exc)})
            return
        for raw in payload.get("transactions", []):
            try:
                record = TransactionRecord.model_validate(raw)
            except ValueError:
                continue
            self._records[record.reference] = record

    def _persist(self) -> None:
        if not self.path:
            return
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        payload = {"transactions": [r.model_dump(mode="json") for r in self._records.values()]}
        tmp = f"{self.path}.{uuid.uuid4().hex}.tmp"
        try:
            with open(tmp, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, ensure_ascii=True)
            os.replace(tmp, self.path)
        except OSError as exc:
            if os.path.exists(tmp):
                os.remove(tmp)
            logger.warning("transaction_store_persist_failed", extra={"path": self.path, "error": repr(exc)})

    async def record(self, entry: TransactionRecord) -> TransactionRecord:
        with self._lock:
            self._records[entry.reference] = entry
            self._persist()
        return entry

    async def update_status(self, provider_transaction_id: str, status: ResponseStatus) -> Optional[TransactionRecord]:
        with self._lock:
            for reference, record in self._records.items():
                if record.provider_transaction_id == provider_transaction_id:
                    updated = record.model_copy(update={"status": status, "updated_at": datetime.now(timezone.utc)})
                    self._records[reference] = updated
                    self._persist()
                    return updated
        return None

    async def list_for_user(self, user_id: str, limit: int = 20, offset: int = 0) -> List[TransactionRecord]:
        with self._lock:
            rows = [r for r in self._records.values() if r.user_id == user_id]
        rows.sort(key=lambda r: r.created_at, reverse=True)
        return rows[offset : offset + limit]
