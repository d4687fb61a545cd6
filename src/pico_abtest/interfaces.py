"""Protocol interfaces for the storage side of pico-abtest.

The cache and transformer never talk to a database directly; they consume
an ``ExperimentRepository``.  Any object with matching async methods can be
used without explicit inheritance.
"""

from typing import Any, Mapping, Optional, Protocol, Sequence


class ExperimentRepository(Protocol):
    """Protocol for reading raw experiment configuration rows.

    The default implementation (``NoOpExperimentRepository``) knows no
    tenants.  Provide a custom implementation (e.g. backed by MySQL or an
    HTTP API) through the container's ``overrides``.
    """

    async def get_mee_group_id(self, tenant: str) -> Optional[str]:
        """Fetch the group identifier of a tenant.

        Args:
            tenant: The tenant (service) code.

        Returns:
            The group id, or ``None`` if the tenant is unknown.
        """
        ...

    async def get_experiments_by_tenant(self, tenant: str) -> Sequence[Mapping[str, Any]]:
        """Fetch the raw experiment rows of a tenant.

        Rows may use either storage column names (``ab_test_id``,
        ``ab_test_nm``, ...) or the attribute names of
        ``pico_abtest.rows.ExperimentRow``.

        Args:
            tenant: The tenant (service) code.

        Returns:
            A sequence of row mappings, empty for unknown tenants.
        """
        ...

    async def get_variants_by_experiment_ids(self, experiment_ids: Sequence[Any]) -> Sequence[Mapping[str, Any]]:
        """Fetch the raw variant rows belonging to the given experiments.

        Args:
            experiment_ids: Experiment identifiers, never empty.

        Returns:
            A sequence of row mappings in storage order.
        """
        ...

    async def list_all_tenants(self) -> Sequence[str]:
        """List every tenant known to the backing store.

        Returns:
            Tenant codes, used by ``ExperimentCache.reload()``.
        """
        ...
