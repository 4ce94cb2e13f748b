from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timezone
from types import MappingProxyType

import pandas as pd

from dataseed.core.errors import EngineNotFound, EngineRequirementNotMet, InvalidDate
from dataseed.core.interfaces import IRecordTransport
from dataseed.core.models import DistributionResult, EngineRequirement, TransportKind, clamp01
from dataseed.core.records import Record
from dataseed.core.retry import RetryPolicy, call_with_retry
from dataseed.normalization.conversion import parse_timestamp

logger = logging.getLogger(__name__)

FRESHNESS_HORIZON_H = 24.0


def _present(record: Record, name: str) -> bool:
    return record.get(name) is not None


class DistributionEngine:
    """
    Matches prepared batches to engine requirements and hands them to the
    transport registered for each engine's transport kind.

    Refusals (too few records, missing required fields, quality below the
    engine's threshold) have no side effects. Transport failures are retried
    per policy and then reported as a refusal, never raised.
    """

    def __init__(
        self,
        requirements: Mapping[str, EngineRequirement] | None = None,
        transports: Mapping[TransportKind, IRecordTransport] | None = None,
        *,
        batch_size: int = 1_000,
        policy: RetryPolicy | None = None,
        history_size: int = 100,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._requirements: dict[str, EngineRequirement] = dict(requirements or {})
        self._transports: dict[str, IRecordTransport] = dict(transports or {})
        self.batch_size = max(1, batch_size)
        self.policy = policy or RetryPolicy()
        self._history_size = history_size
        self._timings: dict[str, deque[float]] = {}
        self._errors: dict[str, deque[str]] = {}
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ---------- registry ----------

    def register_engine(self, name: str, requirement: EngineRequirement) -> None:
        if name in self._requirements:
            logger.info("Replacing requirement for engine %s", name)
        self._requirements[name] = requirement

    def register_transport(self, kind: TransportKind, transport: IRecordTransport) -> None:
        self._transports[kind] = transport

    def requirement(self, engine: str) -> EngineRequirement:
        try:
            return self._requirements[engine]
        except KeyError:
            raise EngineNotFound(engine) from None

    def engines(self) -> MappingProxyType[str, EngineRequirement]:
        return MappingProxyType(dict(self._requirements))

    # ---------- history ----------

    def performance_history(self, engine: str) -> list[float]:
        """Delivery timings (ms) of the most recent deliveries to `engine`."""
        return list(self._timings.get(engine, ()))

    def error_history(self, engine: str) -> list[str]:
        """Timestamped error messages of the most recent failed deliveries to `engine`."""
        return list(self._errors.get(engine, ()))

    def _remember(self, result: DistributionResult) -> None:
        self._timings.setdefault(result.engine, deque(maxlen=self._history_size)).append(result.elapsed_ms)
        if result.error:
            self._errors.setdefault(result.engine, deque(maxlen=self._history_size)).append(
                f"{self._clock().isoformat()}: {result.error}"
            )

    # ---------- matching ----------

    def transform(self, records: Sequence[Record], requirement: EngineRequirement) -> list[Record]:
        """Apply the engine's field renames, then its equality filters."""
        out = list(records)
        if requirement.field_renames:
            out = [self._rename(r, requirement.field_renames) for r in out]
        if requirement.filters:
            out = [r for r in out if all(r.get(k) == v for k, v in requirement.filters)]
        return out

    @staticmethod
    def _rename(record: Record, renames: Sequence[tuple[str, str]]) -> Record:
        if not any(old in record for old, _ in renames):
            return record
        row = record.to_dict()
        for old, new in renames:
            if old in record:
                row.pop(old, None)
                row[new] = record[old]
        return Record.from_mapping(row, record.shape)

    def prepare(self, records: Sequence[Record], requirement: EngineRequirement) -> list[Record]:
        """Transformed records carrying every required field (present and not None), capped at batch_size."""
        kept = [r for r in self.transform(records, requirement) if not r.missing(requirement.required_fields)]
        return kept[: self.batch_size]

    def check(self, engine: str, records: Sequence[Record], *, quality_score: float | None = None) -> None:
        """Raise `EngineRequirementNotMet` when `records` cannot be delivered to `engine`."""
        req = self.requirement(engine)
        if len(records) < req.min_records:
            raise EngineRequirementNotMet(engine, f"insufficient records: {len(records)} < {req.min_records}")
        incomplete = sum(1 for r in records if r.missing(req.required_fields))
        if incomplete:
            raise EngineRequirementNotMet(
                engine, f"{incomplete} record(s) missing required fields {list(req.required_fields)}"
            )
        if quality_score is not None and quality_score < req.quality_threshold:
            raise EngineRequirementNotMet(
                engine, f"quality {quality_score:.3f} below threshold {req.quality_threshold:.3f}"
            )
        if req.transport not in self._transports:
            raise EngineRequirementNotMet(engine, f"no {req.transport} transport registered")

    # ---------- confidence ----------

    def confidence(self, records: Sequence[Record], requirement: EngineRequirement) -> float:
        """mean(required-field quality, freshness, completeness incl. optional fields)."""
        if not records:
            return 0.0
        required = requirement.required_fields
        every = required + tuple(f for f in requirement.optional_fields if f not in required)
        field_quality = self._field_share(records, required)
        completeness = self._field_share(records, every)
        return clamp01((field_quality + self._freshness(records) + completeness) / 3)

    @staticmethod
    def _field_share(records: Sequence[Record], fields: Sequence[str]) -> float:
        if not fields:
            return 1.0
        total = sum(sum(1 for f in fields if _present(r, f)) / len(fields) for r in records)
        return total / len(records)

    def _freshness(self, records: Sequence[Record]) -> float:
        now = pd.Timestamp(self._clock())
        if now.tzinfo is None:
            now = now.tz_localize("UTC")
        ages_h: list[float] = []
        for r in records:
            value = r.get("created_at") or r.get("timestamp")
            try:
                ts = parse_timestamp(value)
            except InvalidDate:
                ages_h.append(0.0)  # undated records count as fresh
                continue
            ages_h.append(max(0.0, (now - ts).total_seconds() / 3600))
        return max(0.0, 1 - (sum(ages_h) / len(ages_h)) / FRESHNESS_HORIZON_H)

    # ---------- delivery ----------

    async def distribute(
        self,
        engine: str,
        records: Sequence[Record],
        *,
        quality_score: float | None = None,
    ) -> bool:
        """Deliver `records` to `engine`; False on refusal or transport failure."""
        req = self.requirement(engine)
        try:
            self.check(engine, records, quality_score=quality_score)
        except EngineRequirementNotMet as e:
            logger.warning("Engine refused batch: %s", e)
            return False

        transport = self._transports[req.transport]

        outcome = await call_with_retry(
            lambda: transport.send(engine, records),
            self.policy,
            label=f"distribute {engine}",
        )
        if not outcome.ok:
            logger.warning("Distribution to %s failed: %s", engine, outcome.error)
            return False
        logger.info("Distributed %d record(s) to %s via %s", len(records), engine, req.transport)
        return True

    async def deliver(
        self,
        engine: str,
        records: Sequence[Record],
        quality_score: float | None = None,
    ) -> DistributionResult:
        """prepare + distribute with timing; unknown engines are reported, not raised."""
        t0 = time.perf_counter()
        try:
            req = self.requirement(engine)
        except EngineNotFound as e:
            return DistributionResult(engine=engine, success=False, error=str(e))

        batch = self.prepare(records, req)
        ok = await self.distribute(engine, batch, quality_score=quality_score)
        elapsed_ms = (time.perf_counter() - t0) * 1000

        error = None
        if not ok:
            try:
                self.check(engine, batch, quality_score=quality_score)
                error = f"{req.transport} transport failed"
            except EngineRequirementNotMet as e:
                error = e.reason
        result = DistributionResult(
            engine=engine,
            success=ok,
            records_distributed=len(batch) if ok else 0,
            elapsed_ms=elapsed_ms,
            confidence_score=self.confidence(batch, req) if ok else 0.0,
            error=error,
        )
        self._remember(result)
        return result
