from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from dataseed.adapters.sources import (
    ApiSourceAdapter,
    BenchmarkSourceAdapter,
    DatabaseSourceAdapter,
    ScrapingSourceAdapter,
    SyntheticSourceAdapter,
)
from dataseed.api.definition import PipelineDefinition
from dataseed.clients.http import HttpClient
from dataseed.collection.collector import SourceCollector
from dataseed.collection.quality import QualityScorer
from dataseed.core.config import OrchestratorConfig, Settings
from dataseed.core.interfaces import ISourceAdapter
from dataseed.core.retry import RetryPolicy
from dataseed.distribution.engine import DistributionEngine
from dataseed.distribution.transports import ApiTransport, DatabaseTransport, FileTransport
from dataseed.enrichment.engine import EnrichmentEngine
from dataseed.enrichment.sources import make_default_sources as make_default_enrichment_sources
from dataseed.normalization.engine import NormalizationEngine
from dataseed.normalization.schemas import make_default_schemas
from dataseed.orchestration.assurance import QualityAssurance
from dataseed.orchestration.orchestrator import SeedingOrchestrator
from dataseed.registry.defaults import (
    make_default_engine_requirements,
    make_default_sources,
    make_default_strategies,
)
from dataseed.registry.sources import DataSourceRegistry
from dataseed.registry.strategies import StrategyRegistry
from dataseed.storage.duckdb_store import DuckDBRecordStore
from dataseed.storage.journal import RunJournal

logger = logging.getLogger(__name__)

ScrapingJob = Callable[[str, datetime | None], Awaitable[Sequence[dict[str, Any]]]]


# ---------------------------------------------------------------------------
# Output DTO
# ---------------------------------------------------------------------------


@dataclass(kw_only=True)
class Pipeline:
    """A wired orchestrator plus the resources it owns."""

    orchestrator: SeedingOrchestrator
    store: DuckDBRecordStore
    http: HttpClient
    journal: RunJournal | None = None

    async def aclose(self) -> None:
        await self.http.aclose()
        self.store.close()


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def build_pipeline(
    settings: Settings,
    definition: PipelineDefinition | None = None,
    *,
    config: OrchestratorConfig | None = None,
    scraping_job: ScrapingJob | None = None,
    http: HttpClient | None = None,
    with_defaults: bool = True,
) -> Pipeline:
    """Wire concrete implementations for CLI / script usage.

    The built-in catalog is registered first (unless `with_defaults` is False);
    entries from `definition` then replace or extend it. Scraping sources only
    get an adapter when a `scraping_job` is supplied.
    """
    if config is None:
        config = (definition.orchestrator_config() if definition else None) or OrchestratorConfig()

    store = DuckDBRecordStore(settings.store_path)
    http = http or HttpClient(timeout_s=config.distribution_timeout_ms / 1000)
    journal = RunJournal(settings.journal_path) if settings.journal_path else None

    # Registries
    sources = DataSourceRegistry(make_default_sources() if with_defaults else ())
    strategies = StrategyRegistry(sources)
    normalizer = NormalizationEngine(make_default_schemas() if with_defaults else ())
    requirements = make_default_engine_requirements() if with_defaults else {}

    if definition is not None:
        for s in definition.source_configs():
            sources.register(s)
        requirements.update(definition.engine_requirements())
        for schema in definition.normalization_schemas():
            normalizer.register_schema(schema)
    if with_defaults:
        for strategy in make_default_strategies():
            strategies.register(strategy)
    if definition is not None:
        for strategy in definition.collection_strategies():
            strategies.register(strategy)

    # Collection
    adapters: dict[str, ISourceAdapter] = {
        "database": DatabaseSourceAdapter(store),
        "api": ApiSourceAdapter(http),
        "synthetic": SyntheticSourceAdapter(),
        "benchmark": BenchmarkSourceAdapter(),
    }
    if scraping_job is not None:
        adapters["scraping"] = ScrapingSourceAdapter(scraping_job)
    scorer = QualityScorer()
    collector = SourceCollector(
        adapters,
        scorer,
        base_delay_s=config.retry_base_delay_s,
        max_delay_s=config.retry_max_delay_s,
        quality_threshold=config.quality_threshold,
    )

    # Distribution
    transports = {
        "database": DatabaseTransport(store),
        "file": FileTransport(settings.out_root),
    }
    endpoints = definition.endpoints if definition is not None else {}
    if endpoints:
        transports["api"] = ApiTransport(http, endpoints)
    distributor = DistributionEngine(
        requirements,
        transports,
        batch_size=config.batch_size,
        policy=RetryPolicy(
            retries=config.distribution_retry_attempts,
            timeout_s=config.distribution_timeout_ms / 1000,
            base_delay_s=config.retry_base_delay_s,
            max_delay_s=config.retry_max_delay_s,
        ),
    )

    assurance = QualityAssurance.from_config(config, scorer=scorer)

    enricher = EnrichmentEngine(make_default_enrichment_sources(), store) if config.enrichment_enabled else None

    orchestrator = SeedingOrchestrator(
        config=config,
        sources=sources,
        strategies=strategies,
        collector=collector,
        normalizer=normalizer,
        distributor=distributor,
        enricher=enricher,
        assurance=assurance,
        store=store,
        journal=journal,
    )
    logger.info(
        "Pipeline ready: %d source(s), %d strateg(ies), %d schema(s), %d engine(s)",
        len(sources),
        len(strategies),
        len(normalizer.schemas()),
        len(requirements),
    )
    return Pipeline(orchestrator=orchestrator, store=store, http=http, journal=journal)
