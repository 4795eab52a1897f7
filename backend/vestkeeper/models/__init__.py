"""Database models"""
from vestkeeper.models.database import Base, get_db
from vestkeeper.models.ledger_event import LedgerEvent

__all__ = [
    "Base",
    "get_db",
    "LedgerEvent",
]
