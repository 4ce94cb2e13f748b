from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Literal

Interval = Literal["hourly", "daily", "weekly"]

INTERVALS: dict[str, timedelta] = {
    "hourly": timedelta(hours=1),
    "daily": timedelta(days=1),
    "weekly": timedelta(weeks=1),
}


@dataclass(frozen=True)
class OrchestratorConfig:
    """Configuration for the seeding orchestrator."""

    batch_size: int = 1_000
    collection_interval: Interval = "daily"
    max_parallel_collections: int = 5
    quality_threshold: float = 0.8  # combined QA gate, within [0, 1]
    enrichment_enabled: bool = True
    bias_detection: bool = True
    governance_checks: bool = True
    distribution_retry_attempts: int = 3
    distribution_timeout_ms: int = 30_000
    retry_base_delay_s: float = 0.5
    retry_max_delay_s: float = 10.0
    continuous_mode: bool = False  # park in "monitoring" between runs
    results_table: str = "data_seeding_results"

    def __post_init__(self) -> None:
        if self.collection_interval not in INTERVALS:
            raise ValueError(f"unknown collection interval: {self.collection_interval!r}")
        if not 0.0 <= self.quality_threshold <= 1.0:
            raise ValueError("quality_threshold must be within [0, 1]")
        if self.max_parallel_collections < 1:
            raise ValueError("max_parallel_collections must be >= 1")
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")

    @property
    def interval(self) -> timedelta:
        return INTERVALS[self.collection_interval]


@dataclass(frozen=True)
class Settings:
    """Process-level settings loaded from environment variables with safe defaults."""

    log_level: str = "INFO"
    store_path: str = ":memory:"  # DuckDB database file
    out_root: Path = Path("./data")  # file transport root
    journal_path: Path | None = None  # JSONL run journal
    definition_path: Path | None = None  # JSON pipeline definition

    @classmethod
    def from_env(cls) -> Settings:
        """Create Settings from DATASEED_* environment variables."""
        journal = os.getenv("DATASEED_JOURNAL")
        definition = os.getenv("DATASEED_DEFINITION")
        return cls(
            log_level=os.getenv("DATASEED_LOG_LEVEL", cls.log_level),
            store_path=os.getenv("DATASEED_STORE", cls.store_path),
            out_root=Path(os.getenv("DATASEED_OUT_ROOT", str(cls.out_root))),
            journal_path=Path(journal) if journal else None,
            definition_path=Path(definition) if definition else None,
        )


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings.from_env()
