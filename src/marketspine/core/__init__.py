"""
Core primitives for the ingestion pipeline.

Leaf modules with no dependency on sources, stores or scoring:

    errors        typed exception hierarchy
    identifiers   CUI normalisation
    kv            shared key-value store (memory, redis)
    locks         distributed lock over the KV store
    budget        per-run item and wall-clock budget
    flags         kill switches and flag snapshots
    settings      pydantic-settings configuration
    schema        SQL tables
"""

from marketspine.core.budget import BudgetSnapshot, RunBudget
from marketspine.core.errors import (
    ErrorCategory,
    ErrorContext,
    IntegrityError,
    LockError,
    MarketSpineError,
    MergeCycleError,
    SourceError,
    SourceUnavailableError,
    StorageError,
    is_retryable,
)
from marketspine.core.flags import FlagSnapshot, FlagStore
from marketspine.core.identifiers import format_for_display, is_valid_cui, normalize_cui
from marketspine.core.kv import InMemoryKVStore, KVStore, RedisKVStore, create_kv_store
from marketspine.core.locks import DistributedLock
from marketspine.core.schema import create_tables

__all__ = [
    "RunBudget",
    "BudgetSnapshot",
    "MarketSpineError",
    "ErrorCategory",
    "ErrorContext",
    "SourceError",
    "SourceUnavailableError",
    "StorageError",
    "IntegrityError",
    "MergeCycleError",
    "LockError",
    "is_retryable",
    "FlagStore",
    "FlagSnapshot",
    "normalize_cui",
    "is_valid_cui",
    "format_for_display",
    "KVStore",
    "InMemoryKVStore",
    "RedisKVStore",
    "create_kv_store",
    "DistributedLock",
    "create_tables",
]
