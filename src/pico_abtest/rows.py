"""Pydantic schemas for raw repository rows.

Rows coming out of the backing store are validated here before they are
turned into the frozen ``Experiment`` / ``Variant`` dataclasses.  Every
field accepts either the storage column name (``ab_test_nm``) or the
attribute name (``name``).  Serialized blobs are decoded from JSON text,
bytes, or passed through when the driver already decoded them, and are
frozen on the way into the dataclasses so cached sets stay read-only.
"""

import json
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import Experiment, ExperimentKind, ExperimentStatus, Variant

RowId = Union[int, str]


def decode_blob(raw: Any) -> Any:
    """Decode a stored blob into structured data.

    ``None`` and empty values decode to ``{}``.

    Raises:
        ValueError: If *raw* is text that is not valid JSON.
    """
    if raw is None:
        return {}
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        if not raw.strip():
            return {}
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"invalid JSON blob ({e.msg} at position {e.pos})") from e
    return raw


def freeze_blob(value: Any) -> Any:
    """Return a read-only view of decoded blob data.

    Objects become ``MappingProxyType`` over a private copy and arrays become
    tuples, recursively.  Scalars are returned unchanged.
    """
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze_blob(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze_blob(v) for v in value)
    return value


class ExperimentRow(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: RowId = Field(alias="ab_test_id")
    name: str = Field(alias="ab_test_nm")
    kind: ExperimentKind = Field(alias="ab_test_type")
    status: ExperimentStatus = Field(alias="ab_test_status")
    attribute_filter: Dict[str, Any] = Field(default_factory=dict, alias="ab_test_atrb_fltr")
    start_time: Optional[datetime] = Field(None, alias="strt_dtm")
    end_time: Optional[datetime] = Field(None, alias="end_dtm")

    @field_validator("attribute_filter", mode="before")
    @classmethod
    def _decode_filter(cls, value: Any) -> Any:
        decoded = decode_blob(value)
        if not isinstance(decoded, dict):
            raise ValueError(f"attribute filter must be an object, got {type(decoded).__name__}")
        return decoded

    def to_experiment(self, variants: Sequence[Variant]) -> Experiment:
        return Experiment(
            id=self.id,
            name=self.name,
            kind=self.kind,
            status=self.status,
            attribute_filter=freeze_blob(self.attribute_filter),
            start_time=self.start_time,
            end_time=self.end_time,
            variants=tuple(variants),
        )


class VariantRow(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: RowId = Field(alias="ab_test_vrt_id")
    experiment_id: RowId = Field(alias="ab_test_id")
    key: str = Field(alias="vrt_key")
    range_start: float = Field(alias="vrt_rng_strt")
    range_end: float = Field(alias="vrt_rng_end")
    payload: Any = Field(default_factory=dict, alias="vrt_vl")

    @field_validator("payload", mode="before")
    @classmethod
    def _decode_payload(cls, value: Any) -> Any:
        return decode_blob(value)

    def to_variant(self) -> Variant:
        return Variant(
            id=self.id,
            key=self.key,
            range_start=self.range_start,
            range_end=self.range_end,
            payload=freeze_blob(self.payload),
        )
