"""Orchestration of the collect → process → quality-assure → distribute cycle.

This package provides:
- SeedingOrchestrator: run state machine with a single-run guard
- QualityAssurance: hard quality gate with bias and governance scorers
- RunContext and scheduling helpers
"""

from dataseed.orchestration.assurance import (
    DistributionBiasScorer,
    PiiGovernanceScorer,
    QualityAssurance,
    QualityReport,
)
from dataseed.orchestration.orchestrator import RunOutcome, SeedingOrchestrator
from dataseed.orchestration.utils import RunContext, compute_next_run

__all__ = [
    "SeedingOrchestrator",
    "RunOutcome",
    "QualityAssurance",
    "QualityReport",
    "DistributionBiasScorer",
    "PiiGovernanceScorer",
    "RunContext",
    "compute_next_run",
]
