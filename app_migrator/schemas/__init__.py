"""Schemas for control-plane entities and pipeline values."""

from app_migrator.schemas.entities import App, ControlPlaneEntity, Domain, Org, Space, Stack
from app_migrator.schemas.results import MigrationResult, ProcessOutcome, QueryResult, ScopePath

__all__ = [
    "App",
    "ControlPlaneEntity",
    "Domain",
    "MigrationResult",
    "Org",
    "ProcessOutcome",
    "QueryResult",
    "ScopePath",
    "Space",
    "Stack",
]
