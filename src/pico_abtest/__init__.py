from .config import (
    CacheSettings,
    Experiment,
    ExperimentKind,
    ExperimentSet,
    ExperimentStatus,
    Variant,
)
from .interfaces import ExperimentRepository
from .factory import NoOpExperimentRepository
from .rows import ExperimentRow, VariantRow
from .validation import PartitionValidator, ValidationReport, ValidationIssue, Severity
from .bucketing import assign_variant, bucketing_score, decide_variant, mee_score
from .transformer import ConfigTransformer
from .cache import CacheStats, ExperimentCache
from .service import ExperimentService
from .lifecycle import ABTestSystem, LifecycleEvent, LifecyclePhase
from .exceptions import ABTestError, CacheClosedError, LoadFailure, MalformedDataError, ReloadError

__all__ = [
    "CacheSettings",
    "Experiment",
    "ExperimentKind",
    "ExperimentSet",
    "ExperimentStatus",
    "Variant",
    "ExperimentRepository",
    "NoOpExperimentRepository",
    "ExperimentRow",
    "VariantRow",
    "PartitionValidator",
    "ValidationReport",
    "ValidationIssue",
    "Severity",
    "assign_variant",
    "bucketing_score",
    "decide_variant",
    "mee_score",
    "ConfigTransformer",
    "CacheStats",
    "ExperimentCache",
    "ExperimentService",
    "ABTestSystem",
    "LifecycleEvent",
    "LifecyclePhase",
    "ABTestError",
    "CacheClosedError",
    "LoadFailure",
    "MalformedDataError",
    "ReloadError",
]
