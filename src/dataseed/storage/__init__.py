"""Storage components for run tracking and record persistence.

This package provides:
- RunJournal: append-only JSONL journal of orchestration runs
- DuckDBRecordStore: JSON-payload record store on DuckDB
"""

from dataseed.storage.duckdb_store import DuckDBRecordStore
from dataseed.storage.journal import RunJournal

__all__ = [
    "DuckDBRecordStore",
    "RunJournal",
]
