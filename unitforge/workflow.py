"""
Safe Generation Workflow.

Wraps a generation function in a bounded validate / auto-fix loop:

    GENERATED -> VALIDATING -> ACCEPTED
                     |  ^
                     v  |
                   FIXING          (at most max_retries times)
                     |
                     v
                 EXHAUSTED -> WorkflowExhaustedError

Only documents that pass validation leave this module.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Protocol

from loguru import logger

from config import get_settings
from unitforge.content.document import AudienceBand, GeneratedDocument
from unitforge.errors import WorkflowExhaustedError
from unitforge.validation.result import ValidationResult

GenerationFn = Callable[[], Awaitable["GeneratedDocument | None"]]


class Validator(Protocol):
    async def validate(
        self, document: GeneratedDocument, audience_band: AudienceBand | None = None
    ) -> ValidationResult:
        ...


class Fixer(Protocol):
    async def auto_fix(self, document: GeneratedDocument, validation: ValidationResult) -> GeneratedDocument:
        ...


class WorkflowState(str, Enum):
    GENERATED = "generated"
    VALIDATING = "validating"
    FIXING = "fixing"
    ACCEPTED = "accepted"
    EXHAUSTED = "exhausted"


@dataclass
class WorkflowRun:
    """State of one workflow invocation. Each call to run() gets its own."""
    state: WorkflowState | None = None
    attempts: int = 0
    history: list[ValidationResult] = field(default_factory=list)
    document: GeneratedDocument | None = None

    def transition(self, state: WorkflowState) -> None:
        logger.debug(f"Workflow {self.state.value if self.state else 'start'} -> {state.value}")
        self.state = state


class SafeGenerationWorkflow:
    """
    Usage:
        workflow = SafeGenerationWorkflow(validator, fixer)
        document = await workflow.run(generator.generation_fn("Volcanoes"), AudienceBand.MIDDLE)

    One instance can serve concurrent runs; nothing per-run lives on it.
    """

    def __init__(self, validator: Validator, fixer: Fixer, max_retries: int | None = None):
        self.validator = validator
        self.fixer = fixer
        self.max_retries = get_settings().workflow_max_retries if max_retries is None else max_retries

    async def run(self, generate_fn: GenerationFn, audience_band: AudienceBand | None = None) -> GeneratedDocument:
        """
        Generate once, then validate and fix until accepted or out of retries.

        Raises:
            WorkflowExhaustedError: Generation produced nothing, or validation
                still rejects after max_retries auto-fix attempts
        """
        run = await self.execute(generate_fn, audience_band)
        return run.document

    async def execute(self, generate_fn: GenerationFn, audience_band: AudienceBand | None = None) -> WorkflowRun:
        """Same as run(), but returns the accepted run with its attempts and validation history."""
        run = WorkflowRun()

        document = await generate_fn()
        if document is None:
            run.transition(WorkflowState.EXHAUSTED)
            raise WorkflowExhaustedError(0, [{"description": "Generation produced no document"}])
        run.transition(WorkflowState.GENERATED)

        band = AudienceBand(audience_band or document.audience_band)

        while True:
            run.transition(WorkflowState.VALIDATING)
            validation = await self.validator.validate(document, band)
            run.history.append(validation)

            if validation.passed:
                run.transition(WorkflowState.ACCEPTED)
                logger.info(f"Document '{document.title}' accepted after {run.attempts} fix attempt(s)")
                run.document = document.with_metadata(aiValidation=validation.metrics.to_dict())
                return run

            if run.attempts >= self.max_retries:
                run.transition(WorkflowState.EXHAUSTED)
                logger.error(
                    f"Document '{document.title}' rejected after {run.attempts} fix attempt(s): "
                    f"{len(validation.issues)} issue(s) remain"
                )
                raise WorkflowExhaustedError(
                    run.attempts, [i.to_dict() for i in validation.issues], history=run.history
                )

            run.transition(WorkflowState.FIXING)
            run.attempts += 1
            logger.info(f"Auto-fix attempt {run.attempts}/{self.max_retries} for {len(validation.issues)} issue(s)")
            document = await self.fixer.auto_fix(document, validation)
