"""
Deterministic validation rules.

These run locally on every validation pass, before the LLM audit. Each rule
takes (document, band rules) and returns a list of ValidationIssue.

Structural rules:
1. Zero text wall: every text block is immediately followed by an interaction
2. No duplicate steps or questions
3. Forbidden topics do not leak into a step
4. Exam mode carries no teaching text and no hints
5. Corrective feedback exists and cites the source

Linguistic rules:
6. Sentence length per grade band
7. Passive voice where the band forbids it
8. Abstract noun density for the elementary band
"""
from __future__ import annotations

import re
from typing import Callable

from unitforge.content.blocks import (
    AudioResponseContent,
    BlockType,
    CategorizationContent,
    ContentBlock,
    FillInBlanksContent,
    InteractiveChatContent,
    MemoryGameContent,
    MultipleChoiceContent,
    OpenQuestionContent,
    OrderingContent,
    TextContent,
)
from unitforge.content.document import GeneratedDocument, GenerationMode
from unitforge.generation.prompts import BandRules
from unitforge.validation.result import IssueType, ValidationIssue, ValidationSeverity

Rule = Callable[[GeneratedDocument, BandRules], list[ValidationIssue]]

SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+|\n+")
WORD = re.compile(r"[^\W\d_]+(?:['’][^\W\d_]+)?|\d+")
PASSIVE_VOICE = re.compile(
    r"\b(am|is|are|was|were|be|been|being)\s+(?:\w+ly\s+)?(\w+ed|\w+en|made|built|found|known|seen|taught)\b",
    re.IGNORECASE,
)
# Words the participle pattern catches that are not participles
NOT_PARTICIPLES = frozenset({
    "often", "even", "seven", "eleven", "ten", "then", "when", "open", "children", "women", "men",
    "garden", "kitchen", "chicken", "golden", "wooden", "oxygen", "citizen", "kitten", "listen",
    "happen", "heaven", "token", "red", "bed", "need", "seed", "speed", "hundred", "sacred", "naked",
})
# Abstract nominal endings; dense use reads as too abstract for young readers
ABSTRACT_SUFFIX = re.compile(r"\b\w{4,}(?:tion|sion|ment|ness|ity|ism|ance|ence)\b", re.IGNORECASE)
ABSTRACT_DENSITY_LIMIT = 0.15

# Phrases in feedback that count as pointing back to the source
CITATION_PATTERN = re.compile(
    r"\b(source|text|passage|paragraph|chapter|section|according to|as (?:stated|described|mentioned))\b|[\"“].+?[\"”]",
    re.IGNORECASE,
)

SCORED_TYPES = {
    BlockType.MULTIPLE_CHOICE,
    BlockType.ORDERING,
    BlockType.CATEGORIZATION,
    BlockType.FILL_IN_BLANKS,
    BlockType.MEMORY_GAME,
}


# =============================================================================
# Helpers
# =============================================================================


def location(step_number: int, block_index: int) -> str:
    return f"{step_number}.{block_index}"


def block_text(block: ContentBlock) -> list[str]:
    """All learner-facing strings of a block."""
    c = block.content
    if isinstance(c, TextContent):
        return [c.text]
    if isinstance(c, MultipleChoiceContent):
        return [c.question, *c.options]
    if isinstance(c, OpenQuestionContent):
        return [c.question]
    if isinstance(c, OrderingContent):
        return [c.instruction, *c.correct_order]
    if isinstance(c, CategorizationContent):
        return [c.question, *c.categories, *(i.text for i in c.items)]
    if isinstance(c, FillInBlanksContent):
        return [c.sentence.replace("[", "").replace("]", "")]
    if isinstance(c, MemoryGameContent):
        return [c.question, *(p.card_a for p in c.pairs), *(p.card_b for p in c.pairs)]
    if isinstance(c, AudioResponseContent):
        return [c.question, c.description]
    if isinstance(c, InteractiveChatContent):
        return [c.title, c.description]
    return []


def prose(block: ContentBlock) -> list[str]:
    """Strings that are full sentences (options and cards are fragments)."""
    c = block.content
    if isinstance(c, TextContent):
        return [c.text]
    if isinstance(c, FillInBlanksContent):
        return block_text(block)
    if isinstance(c, (MultipleChoiceContent, OpenQuestionContent, CategorizationContent, MemoryGameContent)):
        return [c.question]
    if isinstance(c, OrderingContent):
        return [c.instruction]
    if isinstance(c, AudioResponseContent):
        return [c.question, c.description]
    return []


def sentences(text: str) -> list[str]:
    return [s.strip() for s in SENTENCE_SPLIT.split(text) if s.strip()]


def word_count(text: str) -> int:
    return len(WORD.findall(text))


def _fold(text: str) -> str:
    return " ".join(re.sub(r"[^\w\s]", " ", text.lower()).split())


def _question_key(block: ContentBlock) -> str | None:
    c = block.content
    for attr in ("question", "instruction", "sentence"):
        value = getattr(c, attr, None)
        if value:
            return _fold(value)
    return None


def _structural(loc: str, code: str, description: str, fix: str,
                severity: ValidationSeverity = ValidationSeverity.ERROR) -> ValidationIssue:
    return ValidationIssue(loc, IssueType.STRUCTURAL.value, description, fix, severity, code)


def _linguistic(loc: str, code: str, description: str, fix: str,
                severity: ValidationSeverity = ValidationSeverity.WARNING) -> ValidationIssue:
    return ValidationIssue(loc, IssueType.LINGUISTIC.value, description, fix, severity, code)


# =============================================================================
# Structural Rules
# =============================================================================


def check_text_walls(document: GeneratedDocument, band: BandRules) -> list[ValidationIssue]:
    issues = []
    flat = [(step.step_number, i, block) for step, i, block in document.iter_blocks()]
    for position, (step_number, index, block) in enumerate(flat):
        if block.type is not BlockType.TEXT:
            continue
        following = flat[position + 1][2] if position + 1 < len(flat) else None
        if following is None or not following.is_interactive:
            issues.append(_structural(
                location(step_number, index),
                "TEXT_WALL",
                "Text block is not followed by an interactive checkpoint",
                "Add a short multiple_choice or true_false question right after this text.",
            ))
    return issues


def check_duplicate_steps(document: GeneratedDocument, band: BandRules) -> list[ValidationIssue]:
    issues = []
    seen_titles: dict[str, int] = {}
    seen_questions: dict[str, str] = {}

    for step in document.steps:
        title = _fold(step.title)
        if title and title in seen_titles:
            issues.append(_structural(
                str(step.step_number),
                "DUPLICATE_STEP",
                f"Step {step.step_number} repeats the title of step {seen_titles[title]}",
                "Give this step its own distinct focus and title.",
            ))
        seen_titles.setdefault(title, step.step_number)

        for i, block in enumerate(step.blocks):
            if not block.is_interactive:
                continue
            key = _question_key(block)
            loc = location(step.step_number, i)
            if key and key in seen_questions:
                issues.append(_structural(
                    loc,
                    "DUPLICATE_QUESTION",
                    f"Question duplicates the one at {seen_questions[key]}",
                    "Ask about a different aspect of this step's focus.",
                ))
            elif key:
                seen_questions[key] = loc
    return issues


def check_forbidden_topics(document: GeneratedDocument, band: BandRules) -> list[ValidationIssue]:
    """Flag short forbidden terms (up to 4 words) that appear in a step's text."""
    issues = []
    for step in document.steps:
        terms = [t for t in step.forbidden_topics if 0 < word_count(t) <= 4]
        if not terms:
            continue
        patterns = [(t, re.compile(rf"\b{re.escape(t)}\b", re.IGNORECASE)) for t in terms]
        for i, block in enumerate(step.blocks):
            text = " ".join(block_text(block))
            for term, pattern in patterns:
                if pattern.search(text):
                    issues.append(_structural(
                        location(step.step_number, i),
                        "FORBIDDEN_TOPIC",
                        f"Mentions '{term}', which belongs to another step",
                        f"Rewrite without '{term}'; keep to: {step.narrative_focus or step.title}.",
                        ValidationSeverity.WARNING,
                    ))
    return issues


def check_exam_mode(document: GeneratedDocument, band: BandRules) -> list[ValidationIssue]:
    if document.mode is not GenerationMode.EXAM:
        return []
    issues = []
    for step, i, block in document.iter_blocks():
        loc = location(step.step_number, i)
        if block.type is BlockType.TEXT:
            # Auto-fix keeps block count and types, so this needs a fresh exam-mode generation
            issues.append(_structural(loc, "EXAM_TEACH_TEXT", "Exam contains teaching text",
                                      "Regenerate this step in exam mode without the teaching text."))
        elif block.metadata.progressive_hints:
            issues.append(_structural(loc, "EXAM_HINTS", "Exam question carries hints",
                                      "Clear progressive_hints for exam questions."))
    return issues


def check_feedback(document: GeneratedDocument, band: BandRules) -> list[ValidationIssue]:
    issues = []
    for step, i, block in document.iter_blocks():
        if block.type not in SCORED_TYPES:
            continue
        loc = location(step.step_number, i)
        meta = block.metadata

        if meta.answer_inferred:
            issues.append(_structural(loc, "ANSWER_INFERRED",
                                      "Correct answer was not given and was inferred as the first option",
                                      "State the correct answer explicitly."))

        if not meta.feedback_incorrect:
            issues.append(_structural(loc, "MISSING_FEEDBACK", "No corrective feedback for wrong answers",
                                      "Add feedback_incorrect explaining why the wrong choice is wrong.",
                                      ValidationSeverity.WARNING))
        elif not meta.source_reference and not CITATION_PATTERN.search(meta.feedback_incorrect):
            issues.append(_structural(loc, "UNCITED_FEEDBACK", "Corrective feedback does not cite the source",
                                      "Point feedback_incorrect to the passage or section it comes from.",
                                      ValidationSeverity.WARNING))
    return issues


# =============================================================================
# Linguistic Rules
# =============================================================================


def check_sentence_length(document: GeneratedDocument, band: BandRules) -> list[ValidationIssue]:
    issues = []
    limit = band.max_sentence_words
    for step, i, block in document.iter_blocks():
        for text in prose(block):
            for sentence in sentences(text):
                words = word_count(sentence)
                if words <= limit:
                    continue
                severity = ValidationSeverity.ERROR if words > limit * 1.5 else ValidationSeverity.WARNING
                issues.append(_linguistic(
                    location(step.step_number, i),
                    "SENTENCE_TOO_LONG",
                    f"Sentence has {words} words (limit {limit} for {band.label}): '{sentence[:80]}'",
                    "Split this sentence into shorter sentences; keep every idea.",
                    severity,
                ))
    return issues


def find_passive(text: str) -> str | None:
    """First passive construction in the text, or None."""
    for match in PASSIVE_VOICE.finditer(text):
        if match.group(2).lower() not in NOT_PARTICIPLES:
            return match.group(0)
    return None


def check_passive_voice(
document: GeneratedDocument, band: BandRules) -> list[ValidationIssue]:
    if band.allow_passive:
        return []
    issues = []
    for step, i, block in document.iter_blocks():
        for text in prose(block):
            passive = find_passive(text)
            if passive:
                issues.append(_linguistic(
                    location(step.step_number, i),
                    "PASSIVE_VOICE",
                    f"Passive voice ('{passive}') is not allowed for {band.label}",
                    "Rewrite in active voice: say who does the action.",
                ))
    return issues


def check_abstract_vocabulary(document: GeneratedDocument, band: BandRules) -> list[ValidationIssue]:
    if band.register != "personal":
        return []
    issues = []
    for step, i, block in document.iter_blocks():
        text = " ".join(prose(block))
        words = word_count(text)
        if words < 10:
            continue
        density = len(ABSTRACT_SUFFIX.findall(text)) / words
        if density > ABSTRACT_DENSITY_LIMIT:
            issues.append(_linguistic(
                location(step.step_number, i),
                "ABSTRACT_VOCABULARY",
                f"{density:.0%} abstract nouns; too abstract for {band.label}",
                "Replace abstract nouns with concrete words and examples.",
            ))
    return issues


STRUCTURAL_RULES: list[Rule] = [
    check_text_walls,
    check_duplicate_steps,
    check_forbidden_topics,
    check_exam_mode,
    check_feedback,
]

LINGUISTIC_RULES: list[Rule] = [
    check_sentence_length,
    check_passive_voice,
    check_abstract_vocabulary,
]


def run_rules(document: GeneratedDocument, band: BandRules) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for rule in STRUCTURAL_RULES + LINGUISTIC_RULES:
        issues.extend(rule(document, band))
    return issues


# =============================================================================
# Readability
# =============================================================================


def _syllables(word: str) -> int:
    word = word.lower()
    groups = re.findall(r"[aeiouy]+", word)
    count = len(groups)
    if word.endswith("e") and count > 1:
        count -= 1
    return max(1, count)


def readability_score(document: GeneratedDocument) -> float | None:
    """Flesch reading ease over the document's prose, clamped to 0-100."""
    all_sentences = [s for block in document.blocks for text in prose(block) for s in sentences(text)]
    words = [w for s in all_sentences for w in WORD.findall(s) if not w.isdigit()]
    if not all_sentences or not words:
        return None
    syllables = sum(_syllables(w) for w in words)
    score = 206.835 - 1.015 * (len(words) / len(all_sentences)) - 84.6 * (syllables / len(words))
    return round(max(0.0, min(100.0, score)), 1)
