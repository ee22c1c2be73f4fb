from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from threading import Lock
from typing import Dict, List

from settings import SETTINGS, Settings

logger = logging.getLogger(__name__)


class InsufficientFundsError(RuntimeError):
    pass


class WalletGateway(ABC):
    """Seam to the wallet ledger. The ledger itself lives outside this service."""

    @abstractmethod
    async def get_balance(self, user_id: str) -> float:
        raise NotImplementedError

    @abstractmethod
    async def debit(self, user_id: str, amount: float, memo: str) -> float:
        """Debit and return the new balance; raise InsufficientFundsError if it would go negative."""
        raise NotImplementedError


class InMemoryWalletGateway(WalletGateway):
    """Development wallet: every new user starts with DEV_WALLET_BALANCE."""

    def __init__(self, settings: Settings | None = None, opening_balance: float | None = None) -> None:
        settings = settings or SETTINGS
        self.opening_balance = settings.dev_wallet_balance if opening_balance is None else opening_balance
        self._balances: Dict[str, float] = {}
        self._ledger: List[dict] = []
        self._lock = Lock()

    async def get_balance(self, user_id: str) -> float:
        with self._lock:
            return self._balances.setdefault(user_id, float(self.opening_balance))

    async def debit(self, user_id: str, amount: float, memo: str) -> float:
        with self._lock:
            balance = self._balances.setdefault(user_id, float(self.opening_balance))
            if amount > balance:
                raise InsufficientFundsError(f"balance {balance:.2f} is below {amount:.2f}")
            balance = round(balance - amount, 2)
            self._balances[user_id] = balance
            self._ledger.append({"user_id": user_id, "amount": amount, "memo": memo, "balance": balance})
        logger.info("wallet_debited", extra={"user_id": user_id, "amount": amount})
        return balance

    def set_balance(self, user_id: str, balance: float) -> None:
        with self._lock:
            self._balances[user_id] = float(balance)

    def entries(self, user_id: str) -> List[dict]:
        with self._lock:
            return [row for row in self._ledger if row["user_id"] == user_id]
