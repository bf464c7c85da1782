"""Domain models for the verification & analytics engine."""

from .aggregation import AggregationResult, Insights
from .config_models import EngineConfig, ReferenceConfig
from .reference import LoadStatus, ReferenceIndex, SourceDescriptor, SourceKind
from .schema_variant import SchemaVariant
from .uploaded_row import UploadedRow
from .verdict import BatchSummary, MatchResult, RecordResult, Verdict, VerdictStatus

__all__ = [
    # Configuration models
    "EngineConfig",
    "ReferenceConfig",
    # Reference side
    "SchemaVariant",
    "SourceKind",
    "SourceDescriptor",
    "ReferenceIndex",
    "LoadStatus",
    # Upload / matching
    "UploadedRow",
    "Verdict",
    "VerdictStatus",
    "RecordResult",
    "BatchSummary",
    "MatchResult",
    # Analytics
    "AggregationResult",
    "Insights",
]
