"""Source collection and batch quality scoring.

This package provides:
- SourceCollector: per-source collection with retry, deadline and keyed fan-out
- QualityScorer: completeness / consistency / accuracy of a raw batch
- Named strategy validation checks
"""

from dataseed.collection.checks import CHECKS, run_checks
from dataseed.collection.collector import CollectionSummary, SourceCollector
from dataseed.collection.quality import QualityBreakdown, QualityScorer

__all__ = [
    "SourceCollector",
    "CollectionSummary",
    "QualityScorer",
    "QualityBreakdown",
    "CHECKS",
    "run_checks",
]
