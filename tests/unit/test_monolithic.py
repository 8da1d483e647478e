"""
Unit tests for the legacy single-call generator and single-activity generation.
"""

import pytest

from unitforge.content.blocks import BlockType
from unitforge.content.normalizer import BlockNormalizer
from unitforge.errors import TransportError
from unitforge.generation.activities import ActivityGenerator, ActivityKind
from unitforge.generation.monolithic import MonolithicUnitGenerator

SOURCE = "Water evaporates, forms clouds, and falls as rain."


@pytest.fixture
def normalizer(id_factory):
    return BlockNormalizer(id_factory=id_factory, strict_answers=True)


class TestMonolithicUnitGenerator:
    @pytest.mark.asyncio
    async def test_welcome_step_then_one_step_per_activity(self, make_transport, normalizer, sample_mcq_item):
        ordering = {"type": "ordering", "question": "Order the cycle", "items": ["Evaporation", "Clouds", "Rain"]}
        transport = make_transport([{"items": [sample_mcq_item, ordering]}])

        document = await MonolithicUnitGenerator(transport, normalizer, language="English").generate(
            "The water cycle", source_text=SOURCE, item_count=2
        )

        welcome = document.steps[0]
        assert [b.type for b in welcome.blocks] == [BlockType.TEXT, BlockType.INTERACTIVE_CHAT]
        assert [s.title for s in document.steps[1:]] == ["Activity 1", "Activity 2"]
        assert document.steps[2].blocks[0].type is BlockType.ORDERING
        assert document.metadata["generator"] == "monolithic"
        assert SOURCE in transport.prompts[0]

    @pytest.mark.asyncio
    async def test_uses_long_timeout(self, make_transport, normalizer, sample_mcq_item):
        transport = make_transport([[sample_mcq_item]])
        generator = MonolithicUnitGenerator(transport, normalizer)

        await generator.generate("The water cycle")
        assert transport.options[0].timeout_ms == generator.timeout_ms

    @pytest.mark.asyncio
    async def test_unusable_activities_dropped(self, make_transport, normalizer, sample_mcq_item):
        transport = make_transport([[sample_mcq_item, {"type": "memory_game", "pairs": []}]])
        document = await MonolithicUnitGenerator(transport, normalizer).generate("The water cycle")
        assert len(document.steps) == 2

    @pytest.mark.asyncio
    async def test_nothing_usable_returns_none(self, make_transport, normalizer):
        transport = make_transport([[{"type": "ordering"}]])
        assert await MonolithicUnitGenerator(transport, normalizer).generate("The water cycle") is None

    @pytest.mark.asyncio
    async def test_transport_error_returns_none(self, make_transport, normalizer):
        transport = make_transport([TransportError("timeout")])
        assert await MonolithicUnitGenerator(transport, normalizer).generate("The water cycle") is None

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_none(self, make_transport, normalizer):
        transport = make_transport([ConnectionError("reset by peer")])
        assert await MonolithicUnitGenerator(transport, normalizer).generate("The water cycle") is None


class TestActivityGenerator:
    @pytest.mark.asyncio
    async def test_requested_kind_wins(self, make_transport, normalizer):
        response = {
            "type": "multiple_choice",
            "instruction": "Put the stages in order",
            "items": ["Evaporation", "Clouds", "Rain"],
        }
        transport = make_transport([response])

        block = await ActivityGenerator(transport, normalizer).generate(ActivityKind.ORDERING, SOURCE)

        assert block.type is BlockType.ORDERING
        assert block.content.correct_order == ["Evaporation", "Clouds", "Rain"]
        assert SOURCE in transport.prompts[0]

    @pytest.mark.asyncio
    async def test_accepts_string_kind(self, make_transport, normalizer):
        response = {"text": "Rain falls from [clouds].", "word_bank": ["clouds"]}
        block = await ActivityGenerator(make_transport([response]), normalizer).generate("fill_in_blanks", SOURCE)
        assert block.type is BlockType.FILL_IN_BLANKS

    @pytest.mark.asyncio
    async def test_failure_returns_none(self, make_transport, normalizer):
        generator = ActivityGenerator(make_transport([TransportError("down")]), normalizer)
        assert await generator.generate(ActivityKind.MEMORY_GAME, SOURCE) is None

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_none(self, make_transport, normalizer):
        generator = ActivityGenerator(make_transport([RuntimeError("socket closed")]), normalizer)
        assert await generator.generate(ActivityKind.ORDERING, SOURCE) is None

    def test_unknown_kind_raises(self):
        with pytest.raises(ValueError):
            ActivityKind("crossword")
