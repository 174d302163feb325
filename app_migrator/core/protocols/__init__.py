"""Protocols for the external collaborators the engine calls into."""

from app_migrator.core.protocols.control_plane import ControlPlaneClient
from app_migrator.core.protocols.ledger_store import LedgerSnapshot, LedgerStore

__all__ = ["ControlPlaneClient", "LedgerSnapshot", "LedgerStore"]
