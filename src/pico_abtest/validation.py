from dataclasses import dataclass, field
from enum import Enum
from typing import List, Sequence

from .config import Experiment, Variant

BUCKET_SPACE = 100.0
TOLERANCE = 1e-6


class Severity(str, Enum):
    WARNING = "warning"
    ERROR = "error"


@dataclass
class ValidationIssue:
    field: str
    message: str
    severity: Severity


@dataclass
class ValidationReport:
    valid: bool
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(i.severity == Severity.ERROR for i in self.issues)

    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.ERROR]


class PartitionValidator:
    """Checks that an experiment's variant ranges partition ``[0, 100)``."""

    def validate(self, experiment: Experiment) -> ValidationReport:
        return self.validate_variants(experiment.variants)

    def validate_variants(self, variants: Sequence[Variant]) -> ValidationReport:
        issues = []

        if not variants:
            issues.append(ValidationIssue("variants", "Experiment has no variants", Severity.WARNING))
            return ValidationReport(valid=True, issues=issues)

        for v in variants:
            name = f"variants[{v.key}]"
            if v.range_start < 0 or v.range_end > BUCKET_SPACE + TOLERANCE:
                issues.append(ValidationIssue(
                    name, f"Range [{v.range_start}, {v.range_end}) lies outside [0, 100)", Severity.ERROR
                ))
            if v.range_end <= v.range_start:
                issues.append(ValidationIssue(
                    name, f"Range [{v.range_start}, {v.range_end}) is empty", Severity.ERROR
                ))

        ordered = sorted(variants, key=lambda v: v.range_start)
        cursor = 0.0
        for v in ordered:
            if v.range_start > cursor + TOLERANCE:
                issues.append(ValidationIssue(
                    "variants", f"Gap between {cursor} and {v.range_start}", Severity.ERROR
                ))
            elif v.range_start < cursor - TOLERANCE:
                issues.append(ValidationIssue(
                    f"variants[{v.key}]", f"Range starting at {v.range_start} overlaps previous range ending at {cursor}",
                    Severity.ERROR,
                ))
            cursor = max(cursor, v.range_end)

        if cursor < BUCKET_SPACE - TOLERANCE:
            issues.append(ValidationIssue(
                "variants", f"Ranges end at {cursor}, leaving [{cursor}, 100) unassigned", Severity.ERROR
            ))

        return ValidationReport(valid=not any(i.severity == Severity.ERROR for i in issues), issues=issues)
