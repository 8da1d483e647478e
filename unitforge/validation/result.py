"""Validation result types."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ValidationStatus(str, Enum):
    PASS = "PASS"
    REJECT = "REJECT"


class ValidationSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Forces REJECT
    WARNING = "warning"  # Reported, sent to auto-fix on REJECT
    INFO = "info"


class IssueType(str, Enum):
    LINGUISTIC = "LINGUISTIC_VIOLATION"
    STRUCTURAL = "STRUCTURAL_VIOLATION"
    SYSTEM_ERROR = "SYSTEM_ERROR"


@dataclass(frozen=True)
class ValidationIssue:
    """A single validation issue, anchored to '<step>.<block>' or 'document'."""
    location: str
    issue_type: str
    description: str
    suggested_fix: str = ""
    severity: ValidationSeverity = ValidationSeverity.ERROR
    code: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "location": self.location,
            "issue_type": self.issue_type,
            "description": self.description,
            "suggested_fix": self.suggested_fix,
            "severity": self.severity.value,
            "code": self.code,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ValidationIssue:
        severity = data.get("severity") or ValidationSeverity.ERROR.value
        try:
            severity = ValidationSeverity(str(severity).lower())
        except ValueError:
            severity = ValidationSeverity.ERROR
        location = data.get("location")
        if location is None and data.get("module_index") is not None:
            location = str(data["module_index"])
        return cls(
            location=str(location or "document"),
            issue_type=str(data.get("issue_type") or IssueType.STRUCTURAL.value),
            description=str(data.get("description") or ""),
            suggested_fix=str(data.get("suggested_fix") or ""),
            severity=severity,
            code=str(data.get("code") or ""),
        )


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)


@dataclass(frozen=True)
class ValidationMetrics:
    readability_score: float | None = None  # 0-100, higher is easier
    cognitive_load: str | None = None  # Low / Medium / High
    language_register: str | None = None
    cefr_level: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "readability_score": self.readability_score,
            "cognitive_load": self.cognitive_load,
            "language_register": self.language_register,
            "cefr_level": self.cefr_level,
        }

    @classmethod
    def from_dict(cls, data: Any) -> ValidationMetrics:
        if not isinstance(data, dict):
            data = {}
        score = data.get("readability_score")
        try:
            score = max(0.0, min(100.0, float(score))) if score is not None else None
        except (TypeError, ValueError):
            score = None
        return cls(
            readability_score=score,
            cognitive_load=_optional_str(data.get("cognitive_load")),
            language_register=_optional_str(data.get("language_register")),
            cefr_level=_optional_str(data.get("cefr_level")),
        )


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of one validator call. Superseded by the next call, never edited."""
    status: ValidationStatus
    metrics: ValidationMetrics = field(default_factory=ValidationMetrics)
    issues: tuple[ValidationIssue, ...] = ()

    @property
    def passed(self) -> bool:
        return self.status is ValidationStatus.PASS

    @property
    def has_errors(self) -> bool:
        return any(i.severity == ValidationSeverity.ERROR for i in self.issues)

    def locations(self) -> set[str]:
        return {i.location for i in self.issues}

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "metrics": self.metrics.to_dict(),
            "issues": [i.to_dict() for i in self.issues],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ValidationResult:
        issues = data.get("issues")
        if not isinstance(issues, list):
            issues = []
        try:
            status = ValidationStatus(str(data.get("status", "")).upper())
        except ValueError:
            status = ValidationStatus.REJECT
        return cls(
            status=status,
            metrics=ValidationMetrics.from_dict(data.get("metrics")),
            issues=tuple(
                ValidationIssue.from_dict(i) for i in issues if isinstance(i, dict)
            ),
        )

    @classmethod
    def system_error(cls, message: str) -> ValidationResult:
        """Synthesized REJECT used when the audit itself could not run."""
        return cls(
            status=ValidationStatus.REJECT,
            issues=(
                ValidationIssue(
                    location="document",
                    issue_type=IssueType.SYSTEM_ERROR.value,
                    description=f"Validation could not be completed: {message}",
                    code="SYSTEM_ERROR",
                ),
            ),
        )
