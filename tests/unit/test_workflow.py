"""
Unit tests for the Safe Generation Workflow.
"""

import asyncio
import dataclasses

import pytest

from unitforge.errors import WorkflowExhaustedError
from unitforge.validation.result import (
    IssueType,
    ValidationIssue,
    ValidationMetrics,
    ValidationResult,
    ValidationStatus,
)
from unitforge.workflow import SafeGenerationWorkflow, WorkflowState

PASS = ValidationResult(status=ValidationStatus.PASS, metrics=ValidationMetrics(readability_score=80.0, cefr_level="B1"))
REJECT = ValidationResult(
    status=ValidationStatus.REJECT,
    issues=(ValidationIssue("1.0", IssueType.LINGUISTIC.value, "Too long", "Split it."),),
)


class FakeValidator:
    """Returns scripted results; repeats the last one when the script runs out."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    async def validate(self, document, audience_band=None):
        self.calls.append((document, audience_band))
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]


class FakeFixer:
    def __init__(self):
        self.calls = 0

    async def auto_fix(self, document, validation):
        self.calls += 1
        return document.with_metadata(fixed=self.calls)


class ThirdTimeValidator:
    """Rejects each document (by title) until its third validation."""

    def __init__(self):
        self.seen = {}

    async def validate(self, document, audience_band=None):
        self.seen[document.title] = self.seen.get(document.title, 0) + 1
        # let the other run interleave
        await asyncio.sleep(0)
        return PASS if self.seen[document.title] >= 3 else REJECT


def generator(document):
    async def generate():
        return document

    return generate


class TestSafeGenerationWorkflow:
    @pytest.mark.asyncio
    async def test_pass_first_time(self, sample_document):
        validator, fixer = FakeValidator(PASS), FakeFixer()
        workflow = SafeGenerationWorkflow(validator, fixer, max_retries=2)

        run = await workflow.execute(generator(sample_document))
        document = run.document

        assert document.metadata["aiValidation"]["readability_score"] == 80.0
        assert document.metadata["aiValidation"]["cefr_level"] == "B1"
        assert fixer.calls == 0
        assert run.state is WorkflowState.ACCEPTED

    @pytest.mark.asyncio
    async def test_fix_then_pass(self, sample_document):
        validator, fixer = FakeValidator(REJECT, PASS), FakeFixer()
        workflow = SafeGenerationWorkflow(validator, fixer, max_retries=2)

        run = await workflow.execute(generator(sample_document))

        assert run.document.metadata["fixed"] == 1
        assert fixer.calls == 1
        assert run.attempts == 1
        # the fixed document is what gets validated second
        assert validator.calls[1][0].metadata["fixed"] == 1

    @pytest.mark.asyncio
    async def test_run_returns_document(self, sample_document):
        workflow = SafeGenerationWorkflow(FakeValidator(PASS), FakeFixer(), max_retries=2)
        document = await workflow.run(generator(sample_document))
        assert document.title == sample_document.title
        assert "aiValidation" in document.metadata

    @pytest.mark.asyncio
    async def test_exhausted_after_max_retries(self, sample_document):
        validator, fixer = FakeValidator(REJECT), FakeFixer()
        workflow = SafeGenerationWorkflow(validator, fixer, max_retries=2)

        with pytest.raises(WorkflowExhaustedError) as exc:
            await workflow.run(generator(sample_document))

        assert fixer.calls == 2
        assert len(validator.calls) == 3
        assert exc.value.attempts == 2
        assert exc.value.issues[0]["description"] == "Too long"
        assert len(exc.value.history) == 3
        assert exc.value.history[-1] is REJECT

    @pytest.mark.asyncio
    async def test_zero_retries_validates_once(self, sample_document):
        validator, fixer = FakeValidator(REJECT), FakeFixer()

        with pytest.raises(WorkflowExhaustedError):
            await SafeGenerationWorkflow(validator, fixer, max_retries=0).run(generator(sample_document))
        assert fixer.calls == 0

    @pytest.mark.asyncio
    async def test_no_document(self):
        validator, fixer = FakeValidator(PASS), FakeFixer()

        with pytest.raises(WorkflowExhaustedError) as exc:
            await SafeGenerationWorkflow(validator, fixer, max_retries=2).run(generator(None))

        assert exc.value.attempts == 0
        assert validator.calls == []

    @pytest.mark.asyncio
    async def test_band_defaults_to_document(self, sample_document):
        validator = FakeValidator(PASS)
        await SafeGenerationWorkflow(validator, FakeFixer(), max_retries=1).run(generator(sample_document))
        assert validator.calls[0][1] == sample_document.audience_band

    @pytest.mark.asyncio
    async def test_sequential_runs_do_not_share_state(self, sample_document):
        validator, fixer = FakeValidator(REJECT, PASS, PASS), FakeFixer()
        workflow = SafeGenerationWorkflow(validator, fixer, max_retries=2)

        first = await workflow.execute(generator(sample_document))
        second = await workflow.execute(generator(sample_document))

        assert first.attempts == 1
        assert len(first.history) == 2
        assert second.attempts == 0
        assert len(second.history) == 1

    @pytest.mark.asyncio
    async def test_concurrent_runs_keep_their_own_retry_budget(self, sample_document):
        validator, fixer = ThirdTimeValidator(), FakeFixer()
        workflow = SafeGenerationWorkflow(validator, fixer, max_retries=2)
        volcanoes = dataclasses.replace(sample_document, title="Volcanoes")
        rivers = dataclasses.replace(sample_document, title="Rivers")

        runs = await asyncio.gather(
            workflow.execute(generator(volcanoes)),
            workflow.execute(generator(rivers)),
        )

        assert [r.state for r in runs] == [WorkflowState.ACCEPTED, WorkflowState.ACCEPTED]
        assert [r.attempts for r in runs] == [2, 2]
        assert [r.document.title for r in runs] == ["Volcanoes", "Rivers"]
        assert fixer.calls == 4
