import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional, Tuple


class ExperimentKind(str, Enum):
    SEGMENT = "SEGMENT"
    RANDOM = "RANDOM"
    TARGETED = "TARGETED"


class ExperimentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    COMPLETED = "COMPLETED"


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class Variant:
    id: Any
    key: str
    range_start: float
    range_end: float
    payload: Any = field(default_factory=dict)


@dataclass(frozen=True)
class Experiment:
    id: Any
    name: str
    kind: ExperimentKind
    status: ExperimentStatus
    attribute_filter: Mapping[str, Any] = field(default_factory=dict)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    variants: Tuple[Variant, ...] = ()

    def is_active(self, now: datetime) -> bool:
        if self.status != ExperimentStatus.ACTIVE:
            return False
        now = as_utc(now)
        if self.start_time is not None and as_utc(self.start_time) > now:
            return False
        if self.end_time is not None and as_utc(self.end_time) < now:
            return False
        return True


@dataclass(frozen=True)
class ExperimentSet:
    tenant: str
    mee_group_id: Optional[str]
    experiments: Tuple[Experiment, ...]
    loaded_at: datetime

    @property
    def is_empty(self) -> bool:
        return not self.experiments and self.mee_group_id is None

    def find(self, experiment_id: Any) -> Optional[Experiment]:
        wanted = str(experiment_id)
        for experiment in self.experiments:
            if str(experiment.id) == wanted:
                return experiment
        return None

    def active(self, now: Optional[datetime] = None) -> Tuple[Experiment, ...]:
        now = now or datetime.now(timezone.utc)
        return tuple(e for e in self.experiments if e.is_active(now))


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class CacheSettings:
    """Runtime switches for the experiment cache.

    Attributes:
        cache_enabled: When ``False`` every lookup goes straight to the
            repository through ``ConfigTransformer``.
        capacity: Maximum number of resident tenants.
        load_timeout: Seconds a single tenant load may take, or ``None``.
        validate_ranges: Reject tenants whose variant ranges do not
            partition ``[0, 100)``.
    """

    cache_enabled: bool = True
    capacity: int = 100
    load_timeout: Optional[float] = None
    validate_ranges: bool = True

    @classmethod
    def from_env(cls) -> "CacheSettings":
        """Build settings from ``PICO_ABTEST_*`` environment variables."""
        timeout = os.getenv("PICO_ABTEST_LOAD_TIMEOUT")
        return cls(
            cache_enabled=_env_flag("PICO_ABTEST_CACHE_ENABLED", True),
            capacity=int(os.getenv("PICO_ABTEST_CACHE_CAPACITY", "100")),
            load_timeout=float(timeout) if timeout else None,
            validate_ranges=_env_flag("PICO_ABTEST_VALIDATE_RANGES", True),
        )
