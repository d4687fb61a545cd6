"""Raw rows to immutable ``ExperimentSet`` conversion.

``ConfigTransformer`` is the single place where repository rows become
in-memory configuration.  Both the cached and the uncached code paths go
through it, so they always see the same shape of data.
"""

import asyncio
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pico_ioc import component
from pydantic import ValidationError

from .config import CacheSettings, ExperimentSet, Variant
from .exceptions import LoadFailure, MalformedDataError
from .interfaces import ExperimentRepository
from .logging import get_logger
from .rows import ExperimentRow, VariantRow
from .validation import PartitionValidator

logger = get_logger(__name__)


def _describe(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


@component(scope="singleton")
class ConfigTransformer:
    """Loads one tenant's rows and builds its ``ExperimentSet``.

    Does not filter by status or activity window; that is left to readers
    so one cached set can answer any "as of now" query.
    """

    def __init__(self, repository: ExperimentRepository, settings: CacheSettings):
        self.repository = repository
        self.settings = settings
        self.validator = PartitionValidator()

    async def fetch(self, tenant: str) -> ExperimentSet:
        """Load a tenant under ``load_timeout`` with failures as ``LoadFailure``.

        Used by the cache and by the uncached read path alike, so both
        report the same error type.

        Raises:
            LoadFailure: Wrapping any repository error or timeout;
                ``MalformedDataError`` is propagated as is.
        """
        logger.debug("Loading experiments for tenant '%s'", tenant)
        try:
            if self.settings.load_timeout is not None:
                result = await asyncio.wait_for(self.load(tenant), self.settings.load_timeout)
            else:
                result = await self.load(tenant)
        except LoadFailure as e:
            logger.warning("Load failed for tenant '%s': %s", tenant, e)
            raise
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Load failed for tenant '%s': %r", tenant, e)
            raise LoadFailure(tenant, e) from e
        logger.debug("Loaded %d experiments for tenant '%s'", len(result.experiments), tenant)
        return result

    async def load(self, tenant: str) -> ExperimentSet:
        """Fetch a tenant's rows from the repository and build its set.

        Raises:
            MalformedDataError: If a row, blob or range partition is invalid.
        """
        mee_group_id = await self.repository.get_mee_group_id(tenant)
        experiment_rows = await self.repository.get_experiments_by_tenant(tenant)
        variant_rows: Sequence[Mapping[str, Any]] = []
        if experiment_rows:
            ids = [self._row_id(tenant, row) for row in experiment_rows]
            variant_rows = await self.repository.get_variants_by_experiment_ids(ids)
        return self.build(tenant, mee_group_id, experiment_rows, variant_rows)

    def build(
        self,
        tenant: str,
        mee_group_id: Optional[str],
        experiment_rows: Sequence[Mapping[str, Any]],
        variant_rows: Sequence[Mapping[str, Any]],
    ) -> ExperimentSet:
        experiments = [self._parse(tenant, ExperimentRow, row, "experiment") for row in experiment_rows]
        variants = [self._parse(tenant, VariantRow, row, "variant") for row in variant_rows]

        by_experiment: Dict[str, List[Variant]] = defaultdict(list)
        for v in variants:
            by_experiment[str(v.experiment_id)].append(v.to_variant())

        result = []
        for row in experiments:
            experiment = row.to_experiment(by_experiment.get(str(row.id), []))
            self._check_partition(tenant, experiment)
            result.append(experiment)

        return ExperimentSet(
            tenant=tenant,
            mee_group_id=mee_group_id,
            experiments=tuple(result),
            loaded_at=datetime.now(timezone.utc),
        )

    def _parse(self, tenant: str, schema: type, row: Mapping[str, Any], kind: str):
        try:
            return schema.model_validate(dict(row))
        except ValidationError as e:
            raise MalformedDataError(tenant, f"{kind} row {self._safe_id(row)}: {_describe(e)}") from e

    def _check_partition(self, tenant: str, experiment) -> None:
        report = self.validator.validate(experiment)
        if report.valid and not report.issues:
            return
        detail = "; ".join(f"{i.field}: {i.message}" for i in report.issues)
        if report.has_errors and self.settings.validate_ranges:
            raise MalformedDataError(tenant, f"experiment {experiment.id} has invalid variant ranges: {detail}")
        logger.warning("Tenant '%s' experiment %s: %s", tenant, experiment.id, detail)

    def _row_id(self, tenant: str, row: Mapping[str, Any]) -> Any:
        for key in ("ab_test_id", "id"):
            if key in row:
                return row[key]
        raise MalformedDataError(tenant, "experiment row without an id")

    @staticmethod
    def _safe_id(row: Mapping[str, Any]) -> str:
        for key in ("ab_test_vrt_id", "ab_test_id", "id"):
            if key in row:
                return repr(row[key])
        return "<unknown>"
