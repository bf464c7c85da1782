from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any

from ..analytics.aggregation import aggregate
from ..analytics.insights import build_insights
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..matching.engine import match_batch
from ..matching.normalizer import ClassificationResult, classify_and_normalize
from ..models.aggregation import AggregationResult, Insights
from ..models.config_models import EngineConfig
from ..models.error_record import SOURCE_LEVEL_ROW
from ..models.reference import LoadStatus, ReferenceIndex
from ..models.schema_variant import SchemaVariant
from ..models.uploaded_row import UploadedRow
from ..models.verdict import BatchSummary, MatchResult, RecordResult
from ..reference.loader import ReferenceLoadError, load_reference_index
from ..reference.resolver import resolve_source
from ..upload.reader import read_upload
from .progress import LoadProgress

"""Verification engine facade.

The engine owns one ReferenceIndex per known variant. Indices are built once
by load_reference_data() (variants load concurrently and independently) and
published in a single assignment after every load has terminated, so callers
never observe a partially built index. Before that call every variant reads
as unavailable.

Per-upload operations (classify, match, aggregate) are stateless with respect
to the engine and may run concurrently once loading is done.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "EngineStateError",
    "UploadReport",
    "VerificationEngine",
]


class EngineStateError(Exception):
    """Raised when an engine operation is invoked in the wrong lifecycle state."""


@dataclass(frozen=True)
class UploadReport:
    """Everything produced for one uploaded file."""
    file_name: str
    variant: SchemaVariant
    comparable_columns: tuple[str, ...]
    reference_available: bool
    results: list[RecordResult]
    summary: BatchSummary
    aggregation: AggregationResult
    insights: Insights


class VerificationEngine:
    def __init__(self, config: EngineConfig | None = None, error_log: ErrorLogBuffer | None = None) -> None:
        self.config = config or EngineConfig()
        self.error_log = error_log if error_log is not None else ErrorLogBuffer()
        self._indices: Mapping[SchemaVariant, ReferenceIndex] = MappingProxyType(
            {v: ReferenceIndex.unavailable(v) for v in SchemaVariant.known()}
        )
        self._statuses: dict[SchemaVariant, LoadStatus] = {}
        self._load_lock = threading.Lock()
        self._load_started = False

    # ------------------------------------------------------------------
    # read-only views
    # ------------------------------------------------------------------
    @property
    def indices(self) -> Mapping[SchemaVariant, ReferenceIndex]:
        return self._indices

    @property
    def load_statuses(self) -> dict[SchemaVariant, LoadStatus]:
        return dict(self._statuses)

    @property
    def loaded(self) -> bool:
        return bool(self._statuses)

    def index_for(self, variant: SchemaVariant) -> ReferenceIndex:
        index = self._indices.get(variant)
        return index if index is not None else ReferenceIndex.unavailable(variant)

    # ------------------------------------------------------------------
    # start-up
    # ------------------------------------------------------------------
    def load_reference_data(self) -> dict[SchemaVariant, LoadStatus]:
        """Resolve and load every known variant's reference dataset.

        Each variant loads on its own worker; a failing variant is logged,
        recorded in the error log and left unavailable without affecting the
        others. Never raises for load problems.

        Returns:
            LoadStatus per variant

        Raises:
            EngineStateError: if called more than once
        """
        with self._load_lock:
            if self._load_started:
                raise EngineStateError("reference data already loaded (loading is not re-entrant)")
            self._load_started = True

        variants = SchemaVariant.known()
        built: dict[SchemaVariant, ReferenceIndex] = {}
        statuses: dict[SchemaVariant, LoadStatus] = {}

        with LoadProgress(len(variants)) as progress, ThreadPoolExecutor(
            max_workers=len(variants), thread_name_prefix="reference-load"
        ) as pool:
            futures = {pool.submit(self._load_variant, v): v for v in variants}
            for future in as_completed(futures):
                variant = futures[future]
                index, status = future.result()
                built[variant] = index
                statuses[variant] = status
                progress.advance(variant, status)

        # 全ロード終了後に一括公開 (部分的な索引は見せない)
        self._indices = MappingProxyType({v: built[v] for v in variants})
        self._statuses = {v: statuses[v] for v in variants}
        return self.load_statuses

    def _load_variant(self, variant: SchemaVariant) -> tuple[ReferenceIndex, LoadStatus]:
        ref = self.config.reference
        source = "<unresolved>"
        try:
            descriptor = resolve_source(variant, ref)
            if descriptor is None:
                logger.info("reference variant=%s unavailable: no source found", variant.value)
                return ReferenceIndex.unavailable(variant), LoadStatus(loaded=False, row_count=0)
            source = descriptor.describe()
            index = load_reference_index(
                descriptor,
                archive_command=ref.archive_command,
                chunk_size=ref.chunk_size,
            )
        except ReferenceLoadError as e:
            logger.error("reference variant=%s load failed: %s", variant.value, e)
            self._record_load_error(source, variant, "REFERENCE_LOAD_ERROR", str(e))
            return ReferenceIndex.unavailable(variant), LoadStatus(False, 0, source=source, error=str(e))
        except Exception as e:
            # 他の variant のロードを止めない
            logger.exception("reference variant=%s unexpected load error", variant.value)
            self._record_load_error(source, variant, "UNEXPECTED_ERROR", str(e))
            return ReferenceIndex.unavailable(variant), LoadStatus(False, 0, source=source, error=str(e))

        logger.info("reference variant=%s loaded rows=%d source=%s", variant.value, index.row_count, source)
        return index, LoadStatus(loaded=True, row_count=index.row_count, source=source)

    def _record_load_error(self, source: str, variant: SchemaVariant, error_type: str, message: str) -> None:
        self.error_log.append(
            ErrorRecord.create(
                source=source,
                variant=variant.value,
                row=SOURCE_LEVEL_ROW,
                error_type=error_type,
                message=message,
            )
        )

    # ------------------------------------------------------------------
    # per-upload operations
    # ------------------------------------------------------------------
    def classify_and_normalize(
        self,
        raw_rows: Iterable[Mapping[Any, Any]],
        headers: Sequence[Any] | None = None,
    ) -> ClassificationResult:
        return classify_and_normalize(raw_rows, headers)

    def match_batch(
        self,
        rows: Sequence[UploadedRow],
        variant: SchemaVariant,
        comparable_columns: Sequence[str] | None = None,
    ) -> MatchResult:
        return match_batch(
            rows,
            variant,
            self._indices,
            comparable_columns,
            workers=self.config.matching.workers,
        )

    def aggregate(self, results: Iterable[RecordResult]) -> AggregationResult:
        return aggregate(results)

    def insights(self, results: Sequence[RecordResult], aggregation: AggregationResult | None = None) -> Insights:
        return build_insights(results, self.config.analytics, aggregation)

    def verify_upload(self, path: Path) -> UploadReport:
        """Read, classify, match and summarize one uploaded file.

        Raises:
            UploadReadError: the file itself cannot be read (request-level failure)
        """
        table = read_upload(path, max_bytes=self.config.upload.max_bytes)
        classification = self.classify_and_normalize(table.rows, table.headers)
        variant = classification.variant
        if variant is SchemaVariant.UNKNOWN:
            logger.warning("upload=%s has no recognized schema (headers=%s)", table.file_name, table.headers)

        match = self.match_batch(classification.rows, variant, classification.comparable_columns)
        aggregation = self.aggregate(match.results)
        insights = self.insights(match.results, aggregation)
        logger.info(
            "upload=%s variant=%s rows=%d verified=%d mismatch=%d not_found=%d",
            table.file_name,
            variant.value,
            match.summary.total,
            match.summary.verified,
            match.summary.mismatch,
            match.summary.not_found,
        )
        return UploadReport(
            file_name=table.file_name,
            variant=variant,
            comparable_columns=classification.comparable_columns,
            reference_available=self.index_for(variant).usable,
            results=match.results,
            summary=match.summary,
            aggregation=aggregation,
            insights=insights,
        )
