from __future__ import annotations

from pathlib import Path

from rampbench.storage.duckdb_store import Storage

DEFAULT_DB_PATH = Path(".rampbench/rampbench.duckdb")


def default_storage() -> Storage:
    return Storage(DEFAULT_DB_PATH)


__all__ = ["DEFAULT_DB_PATH", "Storage", "default_storage"]
