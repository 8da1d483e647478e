"""
Unit tests for outline generation and step detail generation.
"""

import pytest

from unitforge.content.document import AudienceBand, GenerationMode, LengthTier
from unitforge.errors import TransportError
from unitforge.generation.outline import (
    OutlineGenerator,
    SkeletonStep,
    complete_forbidden_topics,
    parse_skeleton,
)
from unitforge.generation.step_detail import StepDetailGenerator, enforce_exam_mode


def _step(index, focus, interaction="multiple_choice", level="Remember"):
    return SkeletonStep(
        index=index,
        title=f"Step {index}",
        narrative_focus=focus,
        cognitive_level=level,
        suggested_interaction_type=interaction,
    )


class TestParseSkeleton:
    """Outline JSON -> UnitSkeleton."""

    def test_parses_steps(self, sample_outline):
        skeleton = parse_skeleton(sample_outline, "Photosynthesis", 3)

        assert skeleton.title == "How Plants Eat"
        assert [s.index for s in skeleton.steps] == [1, 2, 3]
        assert skeleton.steps[1].suggested_interaction_type == "categorization"
        assert skeleton.steps[2].cognitive_level == "Create"

    def test_forbidden_topics_name_other_steps(self, sample_outline):
        skeleton = parse_skeleton(sample_outline, "Photosynthesis", 3)
        first = skeleton.steps[0]

        assert "roots absorb water" in first.forbidden_topics
        assert "glucose production" in first.forbidden_topics
        assert "sunlight as energy" not in first.forbidden_topics

    def test_missing_steps_returns_none(self):
        assert parse_skeleton({"unit_title": "x"}, "topic", 3) is None
        assert parse_skeleton({"steps": []}, "topic", 3) is None

    def test_extra_steps_truncated(self, sample_outline):
        skeleton = parse_skeleton(sample_outline, "Photosynthesis", 2)
        assert len(skeleton.steps) == 2

    def test_defaults_for_sparse_steps(self):
        skeleton = parse_skeleton({"steps": [{}, {}, {}]}, "Volcanoes", 3)

        assert skeleton.title == "Volcanoes"
        assert [s.cognitive_level for s in skeleton.steps] == ["Remember", "Analyze", "Create"]
        # Remember's preferred interaction
        assert skeleton.steps[0].suggested_interaction_type == "memory_game"
        assert skeleton.steps[0].title == "Step 1"

    def test_unknown_interaction_replaced(self):
        data = {"steps": [{"bloom_level": "Analyze", "suggested_interaction_type": "crossword"}]}
        skeleton = parse_skeleton(data, "t", 1)
        assert skeleton.steps[0].suggested_interaction_type == "categorization"

    def test_lone_string_forbidden_topic_is_one_phrase(self):
        data = {"steps": [{"narrative_focus": "lava", "forbidden_topics": "ash clouds"}, {"narrative_focus": "magma"}]}
        skeleton = parse_skeleton(data, "Volcanoes", 2)
        assert skeleton.steps[0].forbidden_topics == ("ash clouds", "magma")

    @pytest.mark.parametrize("value", [5, {"topic": "ash"}, None, True])
    def test_unusable_forbidden_topics_ignored(self, value):
        data = {"steps": [{"narrative_focus": "lava", "forbidden_topics": value}, {"narrative_focus": "magma"}]}
        skeleton = parse_skeleton(data, "Volcanoes", 2)
        assert skeleton.steps[0].forbidden_topics == ("magma",)

    def test_non_string_fields_coerced(self):
        data = {"steps": [{"title": 7, "narrative_focus": ["lava"], "forbidden_topics": ["ash", 3, None]}]}
        skeleton = parse_skeleton(data, "Volcanoes", 1)
        assert skeleton.steps[0].title == "7"
        assert skeleton.steps[0].forbidden_topics == ("ash", "3")


def test_complete_forbidden_topics_keeps_existing():
    steps = [
        SkeletonStep(1, "A", "alpha", "Remember", "multiple_choice", forbidden_topics=("gamma",)),
        _step(2, "beta"),
    ]
    completed = complete_forbidden_topics(steps)

    assert completed[0].forbidden_topics == ("gamma", "beta")
    assert completed[1].forbidden_topics == ("alpha",)


class TestOutlineGenerator:
    @pytest.mark.asyncio
    async def test_generate_outline(self, make_transport, sample_outline):
        transport = make_transport([sample_outline])
        generator = OutlineGenerator(transport, language="English")

        skeleton = await generator.generate_outline(
            "Photosynthesis",
            source_text="Plants use sunlight.",
            audience_band=AudienceBand.ELEMENTARY,
            length_tier=LengthTier.SHORT,
        )

        assert len(skeleton.steps) == 3
        assert "EXACTLY 3" in transport.prompts[0]
        assert "Plants use sunlight." in transport.prompts[0]
        assert transport.options[0].json_mode is True

    @pytest.mark.asyncio
    async def test_transport_failure_returns_none(self, make_transport):
        generator = OutlineGenerator(make_transport([TransportError("down")]))
        assert await generator.generate_outline("Photosynthesis") is None

    @pytest.mark.asyncio
    async def test_response_without_steps_returns_none(self, make_transport):
        generator = OutlineGenerator(make_transport([{"unit_title": "No steps"}]))
        assert await generator.generate_outline("Photosynthesis") is None

    @pytest.mark.asyncio
    async def test_malformed_json_returns_none(self, make_transport):
        generator = OutlineGenerator(make_transport(["this is not json"]))
        assert await generator.generate_outline("Photosynthesis") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [ConnectionError("reset by peer"), RuntimeError("channel closed")])
    async def test_unexpected_error_returns_none(self, make_transport, error):
        generator = OutlineGenerator(make_transport([error]))
        assert await generator.generate_outline("Photosynthesis") is None

    @pytest.mark.asyncio
    async def test_odd_step_fields_do_not_raise(self, make_transport):
        outline = {"steps": [{"title": "Lava", "forbidden_topics": 5}]}
        skeleton = await OutlineGenerator(make_transport([outline])).generate_outline(
            "Volcanoes", length_tier=LengthTier.SHORT
        )
        assert skeleton.steps[0].title == "Lava"
        assert skeleton.steps[0].forbidden_topics == ()


class TestStepDetail:
    @pytest.mark.asyncio
    async def test_defaults_filled_from_step(self, make_transport):
        transport = make_transport([{"teach_content": "Roots drink water.", "data": {"question": "q"}}])
        generator = StepDetailGenerator(transport, language="English")

        item = await generator.generate_step_detail(
            "Plants", _step(2, "roots", interaction="ordering", level="Analyze"), total_steps=3
        )

        assert item["step_number"] == 2
        assert item["bloom_level"] == "Analyze"
        assert item["selected_interaction"] == "ordering"
        assert "Chapter 2 of 3" in transport.prompts[0]
        assert "roots" in transport.prompts[0]

    @pytest.mark.asyncio
    async def test_model_choice_kept(self, make_transport):
        transport = make_transport([{"selected_interaction": "fill_in_blanks", "data": {}}])
        item = await StepDetailGenerator(transport).generate_step_detail("Plants", _step(1, "sun"))
        assert item["selected_interaction"] == "fill_in_blanks"

    @pytest.mark.asyncio
    async def test_exam_mode_strips_teaching(self, make_transport, sample_mcq_item):
        transport = make_transport([sample_mcq_item])
        item = await StepDetailGenerator(transport).generate_step_detail(
            "Plants", _step(1, "sun"), mode=GenerationMode.EXAM
        )

        assert item["teach_content"] == ""
        assert item["data"]["progressive_hints"] == []
        assert item["data"]["question"] == "What do plants use to make food?"

    @pytest.mark.asyncio
    async def test_failure_returns_none(self, make_transport):
        transport = make_transport([TransportError("timeout")])
        assert await StepDetailGenerator(transport).generate_step_detail("Plants", _step(1, "sun")) is None

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_none(self, make_transport):
        transport = make_transport([ConnectionError("reset by peer")])
        assert await StepDetailGenerator(transport).generate_step_detail("Plants", _step(1, "sun")) is None


def test_enforce_exam_mode_nested_payload():
    item = {
        "teach_content": "Lesson",
        "hints": ["h"],
        "data": {"data": {"question": "q", "progressive_hints": ["a", "b"]}},
    }
    cleaned = enforce_exam_mode(item)

    assert cleaned["teach_content"] == ""
    assert cleaned["hints"] == []
    assert cleaned["data"]["data"] == {"question": "q", "progressive_hints": []}
    # input untouched
    assert item["teach_content"] == "Lesson"
