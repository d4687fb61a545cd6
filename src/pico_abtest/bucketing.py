"""Deterministic user-to-variant bucketing.

A user's *bucketing score* for an experiment is derived from the MD5 digest
of ``str(user_id) + str(experiment_id)``: the digest is read as an unsigned
big-endian integer, reduced modulo ``10000`` and divided by ``100``, which
yields a value in ``[0, 100)`` with a resolution of ``0.01``.  The first
variant whose half-open range ``[range_start, range_end)`` contains the
score wins.

Every function here is pure.  The same inputs give the same variant
whether the variant list came from ``ExperimentCache`` or a direct load.
"""

import hashlib
from typing import Any, Iterable, Optional, TypeVar

V = TypeVar("V")

SCORE_MODULUS = 10000
SCORE_SCALE = 100


def bucketing_score(user_id: Any, experiment_id: Any) -> float:
    """Compute the bucketing score of a user for an experiment.

    Args:
        user_id: The user identifier; converted with ``str()``.
        experiment_id: The experiment identifier; converted with ``str()``.

    Returns:
        A score in ``[0, 100)`` with two decimal places.
    """
    digest = hashlib.md5(f"{user_id}{experiment_id}".encode("utf-8")).digest()
    return (int.from_bytes(digest, "big") % SCORE_MODULUS) / SCORE_SCALE


def mee_score(user_id: Any, mee_group_id: Any) -> float:
    """Bucketing score of a user against a tenant's group id."""
    return bucketing_score(user_id, mee_group_id)


def decide_variant(score: float, variants: Iterable[V]) -> Optional[V]:
    """Return the first variant whose range contains *score*.

    Variants only need ``range_start`` and ``range_end`` attributes.  Gaps
    and overlaps are tolerated: a gap yields ``None``, an overlap resolves
    to the earliest variant in the supplied order.
    """
    for variant in variants:
        if variant.range_start <= score < variant.range_end:
            return variant
    return None


def assign_variant(user_id: Any, experiment_id: Any, variants: Iterable[V]) -> Optional[V]:
    """Assign a user to one of an experiment's variants.

    Args:
        user_id: The user identifier.
        experiment_id: The experiment identifier, mixed into the hash so
            assignments across experiments are independent.
        variants: Candidate variants, scanned in the supplied order.

    Returns:
        The matching variant, or ``None`` when no range covers the score.
    """
    return decide_variant(bucketing_score(user_id, experiment_id), variants)
