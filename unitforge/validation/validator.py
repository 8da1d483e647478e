"""
Content Validator.

Combines the deterministic rules with an LLM audit of register, readability
and cognitive load. The result is REJECT when the audit says so or when any
local rule reports an ERROR.

Suggested fixes pass through the cognitive shield: a fix that would remove
content or lower the cognitive level is rewritten into a split-the-sentence
instruction before anyone acts on it.
"""
from __future__ import annotations

import dataclasses
import re

from loguru import logger

from config import get_settings
from unitforge.content.document import AudienceBand, GeneratedDocument
from unitforge.errors import UnitForgeError
from unitforge.generation.prompts import band_rules, build_validation_prompt
from unitforge.llm.parsing import parse_json_object
from unitforge.llm.transport import CompletionOptions, LLMTransport
from unitforge.validation.result import (
    ValidationIssue,
    ValidationMetrics,
    ValidationResult,
    ValidationSeverity,
    ValidationStatus,
)
from unitforge.validation.rules import readability_score, run_rules

# Suggestions that trade ideas away for simplicity
CONTENT_REDUCTION = re.compile(
    r"\b(remove|delete|omit|drop|cut|eliminate|leave out|get rid of|skip)\b"
    r"|\blower\w*\b.*\b(bloom|cognitive|level)\b"
    r"|\b(bloom|cognitive)\b.*\b(lower|reduce|downgrade)\w*\b"
    r"|\bsimplify the (concept|idea|content)\b",
    re.IGNORECASE,
)

SHIELDED_FIX = (
    "Split long sentences into shorter ones and keep every idea and the current "
    "cognitive level (simple syntax, complex thought)."
)


def shield_fix(issue: ValidationIssue) -> ValidationIssue:
    """Rewrite a content-reducing suggestion into a split-don't-cut instruction."""
    if issue.suggested_fix and CONTENT_REDUCTION.search(issue.suggested_fix):
        logger.debug(f"Cognitive shield rewrote fix at {issue.location}: {issue.suggested_fix!r}")
        return dataclasses.replace(issue, suggested_fix=SHIELDED_FIX)
    return issue


class ContentValidator:
    """
    Validates a generated document for a grade band.

    Usage:
        validator = ContentValidator(transport)
        result = await validator.validate(document, AudienceBand.ELEMENTARY)
        if result.passed:
            ...
    """

    def __init__(self, transport: LLMTransport | None, use_llm: bool = True):
        """
        Args:
            transport: LLM transport for the audit
            use_llm: When False (or no transport), only local rules run
        """
        self.transport = transport
        self.use_llm = use_llm and transport is not None
        self.timeout_ms = get_settings().llm_timeout_ms

    async def validate(
        self,
        document: GeneratedDocument,
        audience_band: AudienceBand | None = None,
    ) -> ValidationResult:
        """
        Validate a document. Never raises; a failed audit yields a SYSTEM_ERROR REJECT.
        """
        band = AudienceBand(audience_band or document.audience_band)
        rules = band_rules(band)
        local_issues = run_rules(document, rules)
        local_readability = readability_score(document)

        if not self.use_llm:
            return self._combine(ValidationStatus.PASS, ValidationMetrics(
                readability_score=local_readability,
                language_register=rules.register,
            ), local_issues)

        prompt = build_validation_prompt(document.to_dict(), band)
        try:
            text = await self.transport.complete(
                prompt,
                CompletionOptions(json_mode=True, temperature=0.2, timeout_ms=self.timeout_ms),
            )
            remote = self._parse_audit(parse_json_object(text, required_key="status"))
        except UnitForgeError as e:
            logger.error(f"Validation audit failed: {e}")
            return ValidationResult.system_error(str(e))
        except Exception as e:
            logger.error(f"Unexpected validation audit error: {e}")
            return ValidationResult.system_error(str(e))

        metrics = remote.metrics
        if metrics.readability_score is None:
            metrics = dataclasses.replace(metrics, readability_score=local_readability)

        issues = [shield_fix(i) for i in remote.issues] + local_issues
        return self._combine(remote.status, metrics, issues)

    @staticmethod
    def _parse_audit(data: dict) -> ValidationResult:
        # Issues listed under a PASS verdict are advisory unless the model said otherwise
        if str(data.get("status", "")).upper() == ValidationStatus.PASS.value:
            raw_issues = data.get("issues")
            if not isinstance(raw_issues, list):
                raw_issues = []
            default_severity = ValidationSeverity.WARNING.value
            data["issues"] = [{"severity": default_severity, **i} for i in raw_issues if isinstance(i, dict)]
        return ValidationResult.from_dict(data)

    def _combine(
        self,
        remote_status: ValidationStatus,
        metrics: ValidationMetrics,
        issues: list[ValidationIssue],
    ) -> ValidationResult:
        has_errors = any(i.severity == ValidationSeverity.ERROR for i in issues)
        status = ValidationStatus.REJECT if remote_status is ValidationStatus.REJECT or has_errors else ValidationStatus.PASS
        result = ValidationResult(status=status, metrics=metrics, issues=tuple(issues))
        logger.info(f"Validation {status.value}: {len(issues)} issue(s)")
        return result
