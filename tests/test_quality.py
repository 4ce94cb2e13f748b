from datetime import datetime, timedelta, timezone

import pytest

from dataseed.collection.checks import run_checks
from dataseed.collection.quality import QualityScorer, data_range
from dataseed.core.config import OrchestratorConfig
from dataseed.core.errors import QualityBelowThreshold
from dataseed.core.models import CollectionStrategy, DataRequirements
from dataseed.orchestration.assurance import DistributionBiasScorer, PiiGovernanceScorer, QualityAssurance

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def test_empty_batch_scores_zero() -> None:
    assert QualityScorer(now=NOW).score([]) == 0.0


def test_clean_batch_scores_one() -> None:
    records = [{"id": i, "platform": "instagram", "created_at": "2024-05-01T00:00:00Z"} for i in range(5)]
    assert QualityScorer(now=NOW).score(records) == pytest.approx(1.0)


def test_sub_scores() -> None:
    records = [
        {"id": 1, "platform": "instagram", "created_at": "2024-05-01"},
        {"id": 2, "platform": "", "created_at": "2030-01-01"},  # empty value, future date
        {"id": 3, "created_at": "2024-05-02"},  # different key set
    ]
    b = QualityScorer(now=NOW).breakdown(records)

    assert b.completeness == pytest.approx(7 / 8)
    assert b.consistency == pytest.approx(2 / 3)
    assert b.accuracy == pytest.approx(2 / 3)
    assert b.score == pytest.approx((7 / 8 + 2 / 3 + 2 / 3) / 3)


def test_unparseable_and_non_finite_values_are_inaccurate() -> None:
    records = [{"created_at": "not a date"}, {"value": float("nan")}, {"value": 1.0}]
    assert QualityScorer(now=NOW).accuracy(records) == pytest.approx(1 / 3)


def test_data_range() -> None:
    records = [{"created_at": "2024-05-03"}, {"timestamp": "2024-05-01"}, {"other": 1}]
    lo, hi = data_range(records) or ("", "")
    assert lo.startswith("2024-05-01")
    assert hi.startswith("2024-05-03")
    assert data_range([{"x": 1}]) is None


def test_bias_scorer() -> None:
    scorer = DistributionBiasScorer()
    assert scorer.score([{"platform": "instagram"}] * 4) == 1.0
    assert scorer.score([{"platform": "a"}, {"platform": "b"}] * 3) == pytest.approx(1.0)
    skewed = [{"platform": "a"}] * 9 + [{"platform": "b"}]
    assert 0.0 < scorer.score(skewed) < 0.5


def test_governance_scorer_flags_email_and_phone() -> None:
    scorer = PiiGovernanceScorer()
    records = [
        {"note": "contact me at someone@example.org"},
        {"note": "call +44 20 7946 0958"},
        {"note": "nothing to see"},
        {"count": 12345678901},
    ]
    assert scorer.score(records) == pytest.approx(0.5)


def test_assurance_combines_checks() -> None:
    qa = QualityAssurance(0.5, scorer=QualityScorer(now=NOW), extra_scorers=[DistributionBiasScorer(), PiiGovernanceScorer()])
    records = [{"id": i, "platform": "a" if i % 2 else "b"} for i in range(10)]

    report = qa.evaluate(records)

    assert set(report.checks) == {"completeness", "consistency", "accuracy", "bias", "governance"}
    assert report.score == pytest.approx(1.0)
    assert report.passed


def test_assurance_gate_raises_below_threshold() -> None:
    qa = QualityAssurance(0.9, scorer=QualityScorer(now=NOW))
    with pytest.raises(QualityBelowThreshold) as exc_info:
        qa.gate([])
    assert exc_info.value.score == 0.0
    assert exc_info.value.threshold == 0.9


def test_strategy_checks() -> None:
    strategy = CollectionStrategy(
        "s",
        ("e",),
        (),
        requirements=DataRequirements(completeness_threshold=0.9),
        validation_rules=("platform_metadata_complete", "timestamp_sequential", "no_such_rule"),
    )
    records = [
        {"platform": "a", "timestamp": "2024-05-02"},
        {"platform": None, "timestamp": "2024-05-01"},
    ]

    warnings = run_checks(records, strategy)

    assert warnings[0].startswith("platform_metadata_complete: 50%")
    assert warnings[1] == "timestamp_sequential: timestamps are not in order"
    assert warnings[2] == "unknown validation rule: no_such_rule"


def test_governance_scorer_ignores_timestamps_and_ids() -> None:
    records = [
        {"created_at": "2024-05-01T10:00:00.123456+00:00", "id": "fake_12", "date": "2024-05-01"},
        {"amount": "1234567.89", "ref": "550e8400-e29b-41d4-a716-446655440000"},
    ]
    assert PiiGovernanceScorer().score(records) == 1.0


def test_range_checks_skip_unbounded_window() -> None:
    strategy = CollectionStrategy(
        "s",
        ("e",),
        (),
        requirements=DataRequirements(required_date_range_days=0),
        validation_rules=("timestamp_within_range", "competitor_data_recent"),
    )
    an_hour_ago = datetime.now(timezone.utc) - timedelta(hours=1)
    records = [{"created_at": an_hour_ago.isoformat()}, {"created_at": "2020-02-01"}]

    assert run_checks(records, strategy) == []


def test_range_check_flags_records_outside_window() -> None:
    strategy = CollectionStrategy(
        "s",
        ("e",),
        (),
        requirements=DataRequirements(required_date_range_days=7),
        validation_rules=("timestamp_within_range",),
    )
    an_hour_ago = datetime.now(timezone.utc) - timedelta(hours=1)
    records = [{"created_at": an_hour_ago.isoformat()}, {"created_at": "2020-02-01"}]

    assert run_checks(records, strategy) == ["timestamp_within_range: 1 record(s) older than 7 days"]


def test_assurance_from_config_follows_check_flags() -> None:
    records = [{"id": "1", "platform": "instagram", "contact": "jane.doe@example.com"}]

    full = QualityAssurance.from_config(OrchestratorConfig(quality_threshold=0.5)).evaluate(records)
    assert set(full.checks) == {"completeness", "consistency", "accuracy", "bias", "governance"}
    assert full.checks["governance"] == 0.0

    bare = QualityAssurance.from_config(
        OrchestratorConfig(quality_threshold=0.5, bias_detection=False, governance_checks=False)
    ).evaluate(records)
    assert set(bare.checks) == {"completeness", "consistency", "accuracy"}
    assert bare.threshold == 0.5
