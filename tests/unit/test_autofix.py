"""
Unit tests for the Auto-Fix Engine.
"""

import copy

import pytest

from unitforge.errors import TransportError
from unitforge.validation.autofix import AutoFixEngine, same_shape
from unitforge.validation.result import IssueType, ValidationIssue, ValidationResult, ValidationStatus


@pytest.fixture
def rejection():
    return ValidationResult(
        status=ValidationStatus.REJECT,
        issues=(
            ValidationIssue("1.0", IssueType.LINGUISTIC.value, "Sentence too long", "Split the sentence."),
        ),
    )


@pytest.fixture
def fixed_payload(sample_document):
    """The sample document as the model returns it after fixing block 1.0."""
    data = copy.deepcopy(sample_document.to_dict())
    data["steps"][0]["blocks"][0]["content"]["text"] = "Plants need sunlight. They use it to make food."
    return data


class TestAutoFixEngine:
    @pytest.mark.asyncio
    async def test_accepts_same_shape_rewrite(self, make_transport, sample_document, rejection, fixed_payload):
        transport = make_transport([fixed_payload])
        fixed = await AutoFixEngine(transport).auto_fix(sample_document, rejection)

        assert fixed.steps[0].blocks[0].content.text == "Plants need sunlight. They use it to make food."
        assert fixed.metadata["autoFixAttempts"] == 1
        assert "Sentence too long" in transport.prompts[0]
        assert transport.options[0].temperature == 0.3

    @pytest.mark.asyncio
    async def test_keeps_step_structure(self, make_transport, sample_document, rejection, fixed_payload):
        fixed_payload["steps"][0]["title"] = "Renamed by the model"
        fixed = await AutoFixEngine(make_transport([fixed_payload])).auto_fix(sample_document, rejection)

        assert fixed.steps[0].title == "Sunlight"
        assert [len(s.blocks) for s in fixed.steps] == [2, 1]

    @pytest.mark.asyncio
    async def test_attempt_counter_increments(self, make_transport, sample_document, rejection, fixed_payload):
        engine = AutoFixEngine(make_transport([fixed_payload, fixed_payload]))

        once = await engine.auto_fix(sample_document, rejection)
        twice = await engine.auto_fix(once, rejection)
        assert twice.metadata["autoFixAttempts"] == 2

    @pytest.mark.asyncio
    async def test_no_issues_skips_call(self, make_transport, sample_document):
        transport = make_transport([])
        result = ValidationResult(status=ValidationStatus.REJECT)

        assert await AutoFixEngine(transport).auto_fix(sample_document, result) is sample_document
        assert transport.call_count == 0

    @pytest.mark.asyncio
    async def test_dropped_block_rejected(self, make_transport, sample_document, rejection, fixed_payload):
        fixed_payload["steps"][0]["blocks"].pop(0)
        fixed = await AutoFixEngine(make_transport([fixed_payload])).auto_fix(sample_document, rejection)
        assert fixed is sample_document

    @pytest.mark.asyncio
    async def test_changed_type_rejected(self, make_transport, sample_document, rejection, fixed_payload):
        fixed_payload["steps"][1]["blocks"][0] = {
            "id": "q2",
            "type": "open-question",
            "content": {"question": "Describe how a plant grows."},
            "metadata": {},
        }
        fixed = await AutoFixEngine(make_transport([fixed_payload])).auto_fix(sample_document, rejection)
        assert fixed is sample_document

    @pytest.mark.asyncio
    async def test_changed_id_rejected(self, make_transport, sample_document, rejection, fixed_payload):
        fixed_payload["steps"][0]["blocks"][1]["id"] = "new-id"
        fixed = await AutoFixEngine(make_transport([fixed_payload])).auto_fix(sample_document, rejection)
        assert fixed is sample_document

    @pytest.mark.asyncio
    async def test_invalid_block_rejected(self, make_transport, sample_document, rejection, fixed_payload):
        fixed_payload["steps"][0]["blocks"][1]["content"]["correctAnswer"] = "Not an option"
        fixed = await AutoFixEngine(make_transport([fixed_payload])).auto_fix(sample_document, rejection)
        assert fixed is sample_document

    @pytest.mark.asyncio
    async def test_invalid_json_keeps_original(self, make_transport, sample_document, rejection):
        fixed = await AutoFixEngine(make_transport(["{broken"])).auto_fix(sample_document, rejection)
        assert fixed is sample_document

    @pytest.mark.asyncio
    async def test_transport_error_keeps_original(self, make_transport, sample_document, rejection):
        fixed = await AutoFixEngine(make_transport([TransportError("down")])).auto_fix(sample_document, rejection)
        assert fixed is sample_document

    @pytest.mark.asyncio
    async def test_unexpected_error_keeps_original(self, make_transport, sample_document, rejection):
        transport = make_transport([RuntimeError("grpc channel closed")])
        fixed = await AutoFixEngine(transport).auto_fix(sample_document, rejection)
        assert fixed is sample_document


def test_same_shape_identity(sample_document):
    assert same_shape(sample_document, sample_document)
