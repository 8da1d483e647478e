"""Rule-based and LLM validation, auto-fix."""
from unitforge.validation.result import (
    IssueType,
    ValidationIssue,
    ValidationMetrics,
    ValidationResult,
    ValidationSeverity,
    ValidationStatus,
)

__all__ = [
    "IssueType",
    "ValidationIssue",
    "ValidationMetrics",
    "ValidationResult",
    "ValidationSeverity",
    "ValidationStatus",
]
