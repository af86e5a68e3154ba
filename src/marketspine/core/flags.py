"""
Kill switches for ingestion jobs and sources.

Flags live in the shared KV store under ``flag:<NAME>`` and may be pinned
by environment variables ``MARKETSPINE_FF_<NAME>``. The orchestrator never
reads the store mid-run: it takes one immutable ``FlagSnapshot`` at
invocation start, so a flag flipped during a run cannot split it into two
behaviours.

Resolution order:
    1. Environment variable ``MARKETSPINE_FF_<NAME>``
    2. KV value ``flag:<NAME>``
    3. Default: risky flags are disabled (fail-closed), others enabled,
       ``READ_ONLY_MODE`` is off

Examples:
    >>> store = FlagStore(InMemoryKVStore(), env={})
    >>> snap = store.snapshot()
    >>> snap.source_enabled("SEAP"), snap.source_enabled("THIRD_PARTY")
    (True, False)
    >>> store.set("INGEST_SEAP", False)
    >>> snap.source_enabled("SEAP")  # snapshot is unchanged
    True

Tags:
    feature-flags, kill-switch, configuration, snapshot
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from marketspine.core.kv import KVStore

logger = logging.getLogger(__name__)

ENV_PREFIX = "MARKETSPINE_FF_"
KEY_PREFIX = "flag:"

INGEST_ENABLED = "INGEST_ENABLED"
READ_ONLY_MODE = "READ_ONLY_MODE"

# Default to disabled until an operator turns them on
RISKY_FLAGS: frozenset[str] = frozenset({"INGEST_THIRD_PARTY"})

# Flags whose "off" state is the safe default regardless of risk
_DEFAULT_OFF: frozenset[str] = frozenset({READ_ONLY_MODE})

_NAME = re.compile(r"^[A-Z][A-Z0-9_]*$")


def _flag_token(value: str) -> str:
    return re.sub(r"[^A-Z0-9]+", "_", value.upper()).strip("_")


def job_flag(job_name: str) -> str:
    """Per-job kill switch name, e.g. ``INGEST_JOB_NATIONAL``."""
    return f"INGEST_JOB_{_flag_token(job_name)}"


def source_flag(source: str) -> str:
    """Per-source kill switch name, e.g. ``INGEST_SEAP``."""
    return f"INGEST_{_flag_token(source)}"


def flag_default(name: str, risky: frozenset[str] = RISKY_FLAGS) -> bool:
    """Default value when neither env nor KV has an opinion."""
    return not (name in risky or name in _DEFAULT_OFF)


def _parse_bool(raw: object) -> bool | None:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
    return None


@dataclass(frozen=True)
class FlagSnapshot:
    """Read-only view of flag values captured at one instant.

    Unknown names fall back to their defaults.
    """

    values: Mapping[str, bool] = field(default_factory=dict)
    risky: frozenset[str] = RISKY_FLAGS

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def is_enabled(self, name: str) -> bool:
        if name in self.values:
            return self.values[name]
        return flag_default(name, self.risky)

    def job_enabled(self, job_name: str) -> bool:
        return self.is_enabled(INGEST_ENABLED) and self.is_enabled(job_flag(job_name))

    def source_enabled(self, source: str) -> bool:
        return self.is_enabled(source_flag(source))

    @property
    def read_only(self) -> bool:
        return self.is_enabled(READ_ONLY_MODE)

    @classmethod
    def all_enabled(cls, **overrides: bool) -> FlagSnapshot:
        """Snapshot with no risky flags and optional explicit values (tests, CLI)."""
        return cls(values=overrides, risky=frozenset())


class FlagStore:
    """KV-backed flag registry with environment overrides.

    Args:
        kv: Shared KV store
        env: Environment mapping (defaults to ``os.environ``)
        risky: Names that default to disabled
    """

    def __init__(
        self,
        kv: KVStore,
        *,
        env: Mapping[str, str] | None = None,
        risky: frozenset[str] = RISKY_FLAGS,
    ) -> None:
        self.kv = kv
        self._env = os.environ if env is None else env
        self.risky = risky

    def get(self, name: str) -> bool:
        """Current value of ``name``.

        KV read errors fall back to the default.
        """
        env_value = self._env.get(f"{ENV_PREFIX}{name}")
        if env_value is not None:
            parsed = _parse_bool(env_value)
            if parsed is not None:
                return parsed
            logger.warning(f"Ignoring unparseable env override for flag {name}: {env_value!r}")

        try:
            stored = self.kv.get(f"{KEY_PREFIX}{name}")
        except Exception as e:
            logger.error(f"Flag read failed for {name}, using default: {e}")
            stored = None

        parsed = _parse_bool(stored)
        if parsed is not None:
            return parsed
        return flag_default(name, self.risky)

    def set(self, name: str, value: bool) -> None:
        if not _NAME.match(name):
            raise ValueError(f"Flag name must be UPPER_SNAKE_CASE: {name}")
        self.kv.set(f"{KEY_PREFIX}{name}", bool(value))

    def reset(self, name: str) -> None:
        """Remove the stored value so the default applies again."""
        self.kv.delete(f"{KEY_PREFIX}{name}")

    def stored_names(self) -> list[str]:
        return [key[len(KEY_PREFIX):] for key in self.kv.keys(KEY_PREFIX)]

    def snapshot(self, names: Iterable[str] = ()) -> FlagSnapshot:
        """Capture ``names`` plus every flag present in the store."""
        wanted = {INGEST_ENABLED, READ_ONLY_MODE, *names}
        try:
            wanted.update(self.stored_names())
        except Exception as e:
            logger.error(f"Flag listing failed, snapshot limited to requested names: {e}")
        return FlagSnapshot(values={name: self.get(name) for name in sorted(wanted)}, risky=self.risky)


__all__ = [
    "FlagStore",
    "FlagSnapshot",
    "job_flag",
    "source_flag",
    "flag_default",
    "RISKY_FLAGS",
    "INGEST_ENABLED",
    "READ_ONLY_MODE",
    "ENV_PREFIX",
]
