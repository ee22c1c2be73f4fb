from .transaction_store import JsonFileTransactionStore, TransactionStore
from .wallet import InMemoryWalletGateway, InsufficientFundsError, WalletGateway

__all__ = [
    "InMemoryWalletGateway",
    "InsufficientFundsError",
    "JsonFileTransactionStore",
    "TransactionStore",
    "WalletGateway",
]
