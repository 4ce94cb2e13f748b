import json
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from dataseed.api.definition import PipelineDefinition
from dataseed.api.pipeline import build_pipeline
from dataseed.cli import cli
from dataseed.core.config import Settings
from dataseed.enrichment.engine import ENRICHMENT_TABLE

DEFINITION: dict[str, Any] = {
    "sources": [{"source_id": "fake_posts", "kind": "synthetic", "data_format": "content_posts", "retry_attempts": 0}],
    "strategies": [{"name": "crm_strategy", "target_engines": ["crm_engine"], "sources": ["fake_posts"]}],
    "engines": {
        "crm_engine": {"min_records": 50, "required_fields": ["post_id", "platform"], "transport": "file"}
    },
    "orchestrator": {"quality_threshold": 0.6, "retry_base_delay_s": 0.0},
}


@pytest.mark.asyncio
async def test_build_pipeline_runs_definition_strategy(tmp_path: Path) -> None:
    settings = Settings(out_root=tmp_path / "out", journal_path=tmp_path / "runs.jsonl")
    pipeline = build_pipeline(settings, PipelineDefinition.model_validate(DEFINITION))
    try:
        assert "content_performance_strategy" in pipeline.orchestrator.strategies
        assert "crm_engine" in pipeline.orchestrator.distributor.engines()

        outcome = await pipeline.orchestrator.execute_strategy("crm_strategy")

        assert outcome.success, outcome.errors
        assert outcome.collection["fake_posts"].records_collected == 100
        assert outcome.quality is not None and outcome.quality.passed
        delivered = outcome.distribution["crm_engine"]
        assert delivered.success and delivered.records_distributed == 100
        assert len(list((tmp_path / "out" / "crm_engine").glob("*.parquet"))) == 1
        assert await pipeline.store.count(ENRICHMENT_TABLE) == 100
        assert await pipeline.store.count("data_seeding_results") == 100
        assert pipeline.journal is not None
        assert pipeline.journal.read()[-1]["status"] == "done"
    finally:
        await pipeline.aclose()


def test_cli_execute(tmp_path: Path) -> None:
    definition = tmp_path / "pipeline.json"
    definition.write_text(json.dumps(DEFINITION))
    runner = CliRunner()

    result = runner.invoke(
        cli,
        ["execute", "crm_strategy", "--definition", str(definition), "--out-root", str(tmp_path / "out")],
    )

    assert result.exit_code == 0, result.output
    assert "Data seeding completed" in result.output


def test_cli_unknown_strategy(tmp_path: Path) -> None:
    definition = tmp_path / "pipeline.json"
    definition.write_text(json.dumps(DEFINITION))

    result = CliRunner().invoke(cli, ["execute", "nope", "--definition", str(definition)])

    assert result.exit_code == 2
    assert "Strategy not found: nope" in result.output


def test_cli_rejects_invalid_definition(tmp_path: Path) -> None:
    definition = tmp_path / "pipeline.json"
    definition.write_text(json.dumps({"sources": [{"source_id": "x", "kind": "ftp"}]}))

    result = CliRunner().invoke(cli, ["sources", "--definition", str(definition)])

    assert result.exit_code == 1
    assert "invalid pipeline definition" in result.output
