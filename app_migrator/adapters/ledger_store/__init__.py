"""Ledger store adapters."""

from app_migrator.adapters.ledger_store.fake import InMemoryLedgerStore
from app_migrator.adapters.ledger_store.file import FileLedgerStore

__all__ = ["FileLedgerStore", "InMemoryLedgerStore"]
