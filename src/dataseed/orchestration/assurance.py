"""Quality-assurance gate applied to the normalized batch of a run.

Checks
------
- completeness, consistency, accuracy: `QualityScorer` sub-scores
- bias: normalized entropy of a categorical field's distribution
- governance: share of records whose string values carry no PII pattern

The combined score is the mean of every enabled check. A combined score
below the threshold raises `QualityBelowThreshold`.
"""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from dataseed.collection.quality import QualityScorer
from dataseed.core.config import OrchestratorConfig
from dataseed.core.errors import QualityBelowThreshold
from dataseed.core.interfaces import IBatchScorer
from dataseed.core.models import clamp01

logger = logging.getLogger(__name__)

PII_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}"),
    re.compile(r"\+\d[\d\s().-]{7,}\d"),  # international, "+44 20 7946 0958"
    re.compile(r"\(\d{3}\)\s?\d{3}[\s.-]\d{4}\b"),
    re.compile(r"\b\d{3}[\s.-]\d{3}[\s.-]\d{4}\b"),
)


class DistributionBiasScorer:
    """1.0 for a perfectly balanced `field`, 0.0 when one value dominates entirely.

    Batches where the field is absent or takes a single value score 1.0.
    """

    name = "bias"

    def __init__(self, field: str = "platform") -> None:
        self.field = field

    def score(self, records: Sequence[Mapping[str, Any]]) -> float:
        counts = Counter(str(r[self.field]) for r in records if r.get(self.field) is not None)
        total = sum(counts.values())
        if len(counts) < 2:
            return 1.0
        entropy = -sum((c / total) * math.log(c / total) for c in counts.values())
        return clamp01(entropy / math.log(len(counts)))


class PiiGovernanceScorer:
    """Share of records with no string value matching a PII pattern."""

    name = "governance"

    def __init__(self, patterns: Sequence[re.Pattern[str]] = PII_PATTERNS) -> None:
        self._patterns = tuple(patterns)

    def _has_pii(self, record: Mapping[str, Any]) -> bool:
        for value in record.values():
            if isinstance(value, str) and any(p.search(value) for p in self._patterns):
                return True
        return False

    def score(self, records: Sequence[Mapping[str, Any]]) -> float:
        if not records:
            return 1.0
        clean = sum(1 for r in records if not self._has_pii(r))
        return clean / len(records)


@dataclass(kw_only=True)
class QualityReport:
    score: float
    threshold: float
    checks: dict[str, float] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.score >= self.threshold


class QualityAssurance:
    def __init__(
        self,
        threshold: float,
        *,
        scorer: QualityScorer | None = None,
        extra_scorers: Sequence[IBatchScorer] = (),
    ) -> None:
        self.threshold = threshold
        self._scorer = scorer or QualityScorer()
        self._extra = list(extra_scorers)

    @classmethod
    def from_config(cls, config: OrchestratorConfig, *, scorer: QualityScorer | None = None) -> QualityAssurance:
        """Gate at `config.quality_threshold` with the bias and governance checks the config enables."""
        extra: list[IBatchScorer] = []
        if config.bias_detection:
            extra.append(DistributionBiasScorer())
        if config.governance_checks:
            extra.append(PiiGovernanceScorer())
        return cls(config.quality_threshold, scorer=scorer, extra_scorers=extra)

    def evaluate(self, records: Sequence[Mapping[str, Any]]) -> QualityReport:
        checks = self._scorer.breakdown(records).as_dict()
        for s in self._extra:
            checks[s.name] = clamp01(s.score(records)) if records else 0.0
        score = clamp01(sum(checks.values()) / len(checks)) if records else 0.0
        return QualityReport(score=score, threshold=self.threshold, checks=checks)

    def gate(self, records: Sequence[Mapping[str, Any]]) -> QualityReport:
        """Evaluate and raise `QualityBelowThreshold` when the batch fails."""
        report = self.evaluate(records)
        logger.info(
            "Quality assurance: score=%.3f threshold=%.3f checks=%s",
            report.score,
            report.threshold,
            {k: round(v, 3) for k, v in report.checks.items()},
        )
        if not report.passed:
            raise QualityBelowThreshold(report.score, report.threshold, report.checks)
        return report
