"""
Unit tests for the deterministic validation rules.
"""

from dataclasses import replace

import pytest

from unitforge.content.blocks import BlockType, make_block
from unitforge.content.document import AudienceBand, DocumentStep, GeneratedDocument, GenerationMode
from unitforge.generation.prompts import band_rules
from unitforge.validation.result import IssueType, ValidationSeverity
from unitforge.validation.rules import (
    check_abstract_vocabulary,
    check_duplicate_steps,
    check_exam_mode,
    check_feedback,
    check_forbidden_topics,
    check_passive_voice,
    check_sentence_length,
    check_text_walls,
    readability_score,
    run_rules,
    word_count,
)

ELEMENTARY = band_rules(AudienceBand.ELEMENTARY)
HIGH = band_rules(AudienceBand.HIGH)


def text(value, block_id="t"):
    return make_block(BlockType.TEXT, {"text": value}, id_factory=lambda: block_id)


def mcq(question="Which one?", block_id="q", **metadata):
    metadata.setdefault("feedback_incorrect", "The passage explains this.")
    return make_block(
        BlockType.MULTIPLE_CHOICE,
        {"question": question, "options": ["A", "B"], "correct_answer": "A"},
        metadata,
        id_factory=lambda: block_id,
    )


def doc(*steps, mode=GenerationMode.LEARNING):
    return GeneratedDocument(title="Unit", topic="Topic", steps=tuple(steps), mode=mode)


def step(number, *blocks, title=None, forbidden=()):
    return DocumentStep(step_number=number, title=title or f"Step {number}", blocks=blocks, forbidden_topics=forbidden)


def codes(issues):
    return [i.code for i in issues]


def test_sample_document_is_clean(sample_document):
    assert run_rules(sample_document, band_rules(AudienceBand.MIDDLE)) == []
    assert run_rules(sample_document, ELEMENTARY) == []


class TestTextWalls:
    def test_trailing_text_block(self):
        issues = check_text_walls(doc(step(1, mcq(), text("Closing words."))), ELEMENTARY)

        assert codes(issues) == ["TEXT_WALL"]
        assert issues[0].location == "1.1"
        assert issues[0].severity is ValidationSeverity.ERROR
        assert issues[0].issue_type == IssueType.STRUCTURAL.value

    def test_consecutive_text_blocks(self):
        issues = check_text_walls(doc(step(1, text("One."), text("Two."), mcq())), ELEMENTARY)
        assert [i.location for i in issues] == ["1.0"]

    def test_text_then_question_passes(self):
        assert check_text_walls(doc(step(1, text("One."), mcq())), ELEMENTARY) == []


class TestDuplicates:
    def test_repeated_title(self):
        document = doc(step(1, mcq("First?", "a"), title="Roots"), step(2, mcq("Second?", "b"), title="roots"))
        assert codes(check_duplicate_steps(document, ELEMENTARY)) == ["DUPLICATE_STEP"]

    def test_repeated_question_ignores_case_and_punctuation(self):
        document = doc(step(1, mcq("What is a root?", "a")), step(2, mcq("what is a root", "b")))
        issues = check_duplicate_steps(document, ELEMENTARY)

        assert codes(issues) == ["DUPLICATE_QUESTION"]
        assert issues[0].location == "2.0"


def test_forbidden_topic_mentioned():
    document = doc(step(1, text("Leaves catch light with chlorophyll."), mcq(), forbidden=("chlorophyll",)))
    issues = check_forbidden_topics(document, ELEMENTARY)

    assert codes(issues) == ["FORBIDDEN_TOPIC"]
    assert issues[0].severity is ValidationSeverity.WARNING


def test_long_forbidden_descriptions_ignored():
    forbidden = ("how roots absorb water from the soil",)
    document = doc(step(1, text("Roots absorb water from the soil."), mcq(), forbidden=forbidden))
    assert check_forbidden_topics(document, ELEMENTARY) == []


class TestExamMode:
    def test_text_and_hints_flagged(self):
        document = doc(
            step(1, text("Lesson."), mcq(progressive_hints=["hint"])),
            mode=GenerationMode.EXAM,
        )
        assert codes(check_exam_mode(document, ELEMENTARY)) == ["EXAM_TEACH_TEXT", "EXAM_HINTS"]

    def test_teach_text_fix_asks_for_regeneration(self):
        document = doc(step(1, text("Lesson."), mcq()), mode=GenerationMode.EXAM)
        issue = check_exam_mode(document, ELEMENTARY)[0]

        assert issue.suggested_fix.startswith("Regenerate")
        assert "Remove" not in issue.suggested_fix

    def test_learning_mode_ignored(self):
        document = doc(step(1, text("Lesson."), mcq(progressive_hints=["hint"])))
        assert check_exam_mode(document, ELEMENTARY) == []


class TestFeedback:
    def test_missing_feedback(self):
        issues = check_feedback(doc(step(1, mcq(feedback_incorrect=None))), ELEMENTARY)

        assert codes(issues) == ["MISSING_FEEDBACK"]
        assert issues[0].severity is ValidationSeverity.WARNING

    def test_uncited_feedback(self):
        issues = check_feedback(doc(step(1, mcq(feedback_incorrect="Wrong, try again."))), ELEMENTARY)
        assert codes(issues) == ["UNCITED_FEEDBACK"]

    def test_source_reference_counts_as_citation(self):
        block = mcq(feedback_incorrect="Wrong, try again.", source_reference="Page 4")
        assert check_feedback(doc(step(1, block)), ELEMENTARY) == []

    def test_inferred_answer_is_an_error(self):
        issues = check_feedback(doc(step(1, mcq(answer_inferred=True))), ELEMENTARY)

        assert codes(issues) == ["ANSWER_INFERRED"]
        assert issues[0].severity is ValidationSeverity.ERROR

    def test_open_questions_not_scored(self):
        block = make_block(BlockType.OPEN_QUESTION, {"question": "Why?"}, id_factory=lambda: "o")
        assert check_feedback(doc(step(1, block)), ELEMENTARY) == []


class TestLinguistic:
    def test_sentence_slightly_too_long_is_warning(self):
        sentence = "Plants use light from the sun to make the sugar that they need every day."
        assert word_count(sentence) == 15
        issues = check_sentence_length(doc(step(1, text(sentence), mcq())), ELEMENTARY)

        assert codes(issues) == ["SENTENCE_TOO_LONG"]
        assert issues[0].severity is ValidationSeverity.WARNING
        assert issues[0].issue_type == IssueType.LINGUISTIC.value

    def test_sentence_far_too_long_is_error(self):
        sentence = " ".join(["word"] * 25) + "."
        issues = check_sentence_length(doc(step(1, text(sentence), mcq())), ELEMENTARY)
        assert issues[0].severity is ValidationSeverity.ERROR

    def test_same_sentence_fine_for_high_school(self):
        sentence = "Plants use light from the sun to make the sugar that they need every day."
        assert check_sentence_length(doc(step(1, text(sentence), mcq())), HIGH) == []

    def test_passive_voice_elementary_only(self):
        document = doc(step(1, text("The seed is planted by the farmer."), mcq()))

        assert codes(check_passive_voice(document, ELEMENTARY)) == ["PASSIVE_VOICE"]
        assert check_passive_voice(document, HIGH) == []

    def test_active_voice_passes(self):
        document = doc(step(1, text("The farmer plants the seed."), mcq()))
        assert check_passive_voice(document, ELEMENTARY) == []

    @pytest.mark.parametrize(
        "sentence",
        ["Rain is often heavy in spring.", "They are children of the farmer.", "The answer was seven.", "The door is open."],
    )
    def test_en_words_that_are_not_participles(self, sentence):
        document = doc(step(1, text(sentence), mcq()))
        assert check_passive_voice(document, ELEMENTARY) == []

    def test_passive_found_after_false_match(self):
        document = doc(step(1, text("It is often said that the seed was eaten by birds."), mcq()))
        issues = check_passive_voice(document, ELEMENTARY)

        assert codes(issues) == ["PASSIVE_VOICE"]
        assert "was eaten" in issues[0].description

    def test_abstract_vocabulary(self):
        dense = (
            "The organization and administration of information requires concentration, "
            "consideration, motivation, and determination in every situation."
        )
        document = doc(step(1, text(dense), mcq()))

        assert codes(check_abstract_vocabulary(document, ELEMENTARY)) == ["ABSTRACT_VOCABULARY"]
        assert check_abstract_vocabulary(document, HIGH) == []


class TestReadability:
    def test_score_in_range(self, sample_document):
        score = readability_score(sample_document)
        assert 0 <= score <= 100

    def test_empty_document(self):
        assert readability_score(doc()) is None

    def test_simpler_text_scores_higher(self):
        simple = doc(step(1, text("The cat sat. The dog ran. We had fun."), mcq("Who ran?")))
        hard = doc(step(1, text(
            "Photosynthetic organisms systematically metabolize atmospheric carbon through "
            "complicated biochemical transformations."
        ), mcq("Who ran?")))
        assert readability_score(simple) > readability_score(hard)


def test_replace_keeps_rules_pure(sample_document):
    exam = replace(sample_document, mode=GenerationMode.EXAM)
    assert codes(check_exam_mode(exam, ELEMENTARY)) == ["EXAM_TEACH_TEXT"]
    assert check_exam_mode(sample_document, ELEMENTARY) == []
