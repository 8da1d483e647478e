"""
Block Normalizer.

Maps arbitrary LLM JSON onto the fixed ContentBlock variants.

The model is not consistent about field names: the same concept arrives as
`options`, `choices` or `answers`, nested under `data.data`, `data` or
`interactive_question`, or at the top level. Every accepted spelling is listed
once in FIELD_ALIASES / TYPE_ALIASES below; the routines read through `_first()`.

Contract:
- normalize() never raises and never returns a half-filled block
- None means "skip this item", never "use a placeholder"
- no side effects besides logging; ids come from the injected factory
"""
from __future__ import annotations

import re
from typing import Any, Callable

from loguru import logger
from pydantic import ValidationError

from unitforge.content.blocks import (
    BLANK_PATTERN,
    SCORE_WEIGHTS,
    BlockType,
    ContentBlock,
    IdFactory,
    make_block,
    new_block_id,
)

RawItem = dict[str, Any]


class NormalizationFailure(Exception):
    """Raised inside a routine when the item cannot be made into a valid block."""


# =============================================================================
# Alias Tables
# =============================================================================

# External type tag (lowercased, '-' and ' ' folded to '_') -> block variant
TYPE_ALIASES: dict[str, BlockType] = {
    # multiple choice
    "multiple_choice": BlockType.MULTIPLE_CHOICE,
    "multiplechoice": BlockType.MULTIPLE_CHOICE,
    "mcq": BlockType.MULTIPLE_CHOICE,
    "single_choice": BlockType.MULTIPLE_CHOICE,
    "true_false": BlockType.MULTIPLE_CHOICE,
    "truefalse": BlockType.MULTIPLE_CHOICE,
    "true_or_false": BlockType.MULTIPLE_CHOICE,
    "teach_then_ask": BlockType.MULTIPLE_CHOICE,
    "quiz": BlockType.MULTIPLE_CHOICE,
    # open question
    "open_question": BlockType.OPEN_QUESTION,
    "open_ended": BlockType.OPEN_QUESTION,
    "open": BlockType.OPEN_QUESTION,
    "short_answer": BlockType.OPEN_QUESTION,
    # ordering
    "ordering": BlockType.ORDERING,
    "sequencing": BlockType.ORDERING,
    "sequence": BlockType.ORDERING,
    "timeline": BlockType.ORDERING,
    # categorization
    "categorization": BlockType.CATEGORIZATION,
    "categorisation": BlockType.CATEGORIZATION,
    "grouping": BlockType.CATEGORIZATION,
    "matching": BlockType.CATEGORIZATION,
    "classification": BlockType.CATEGORIZATION,
    "sorting": BlockType.CATEGORIZATION,
    # fill in blanks
    "fill_in_blanks": BlockType.FILL_IN_BLANKS,
    "fill_in_the_blanks": BlockType.FILL_IN_BLANKS,
    "fill_in_blank": BlockType.FILL_IN_BLANKS,
    "fill_blanks": BlockType.FILL_IN_BLANKS,
    "cloze": BlockType.FILL_IN_BLANKS,
    # audio
    "audio_response": BlockType.AUDIO_RESPONSE,
    "oral_answer": BlockType.AUDIO_RESPONSE,
    "record_answer": BlockType.AUDIO_RESPONSE,
    "audio": BlockType.AUDIO_RESPONSE,
    # memory game
    "memory_game": BlockType.MEMORY_GAME,
    "memory": BlockType.MEMORY_GAME,
    "matching_pairs": BlockType.MEMORY_GAME,
    "pairs": BlockType.MEMORY_GAME,
}

TRUE_FALSE_TAGS = frozenset({"true_false", "truefalse", "true_or_false"})
MATCHING_TAGS = frozenset({"matching"})
DEFAULT_TAG = "multiple_choice"
FALLBACK_TYPE = BlockType.MULTIPLE_CHOICE

FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "type": ("selected_interaction", "type", "interaction_type", "activity_type"),
    "question": ("question", "question_text", "text", "instruction", "prompt"),
    "question_object": ("text", "question", "instruction"),
    # multiple choice
    "options": ("options", "choices", "answers"),
    "option_text": ("text", "label", "option", "value", "content"),
    "option_flag": ("is_correct", "isCorrect", "correct"),
    "correct_answer": ("correct_answer", "correctAnswer", "answer", "correct"),
    "correct_index": ("correct_index", "correctIndex", "correct_option", "answer_index"),
    # open question
    "model_answer": ("model_answer", "teacher_guidelines", "answer_key", "expected_answer"),
    "model_answer_object": ("text", "answer", "content"),
    # ordering
    "sequence": ("items", "steps", "correct_order", "sequence", "events"),
    "sequence_text": ("text", "step", "content", "description", "event"),
    "sequence_position": ("position", "order", "index"),
    # categorization
    "categories": ("categories", "groups", "buckets"),
    "category_name": ("name", "title", "label", "category"),
    "category_items": ("items", "elements", "cards", "statements"),
    "item_text": ("text", "item", "content", "label"),
    "item_category": ("category", "group"),
    "item_category_index": ("group_index", "category_index"),
    "matching_pairs": ("pairs", "matches"),
    "matching_left": ("left", "item", "term", "text"),
    "matching_right": ("right", "category", "match", "definition"),
    # fill in blanks
    "sentence": ("text", "content", "sentence", "passage"),
    "word_bank": ("word_bank", "wordBank", "options", "hidden_words", "words"),
    # audio
    "audio_description": ("description", "instructions", "guidance"),
    "max_duration": ("max_duration", "maxDuration", "duration"),
    # memory game
    "memory_pairs": ("pairs", "cards", "matching_pairs"),
    # common metadata
    "bloom_level": ("bloom_level", "cognitive_level", "bloomLevel"),
    "feedback_correct": ("feedback_correct", "feedback", "feedbackCorrect"),
    "feedback_incorrect": ("feedback_incorrect", "feedbackIncorrect"),
    "source_reference": ("source_reference", "source_reference_hint", "sourceReference"),
    "hints": ("progressive_hints", "hints", "progressiveHints"),
    "teacher_tip": ("teacher_tip", "teacherTip"),
}

# Two-sided card shapes seen in memory-game payloads
PAIR_KEYS: tuple[tuple[str, str], ...] = (
    ("card_a", "card_b"),
    ("cardA", "cardB"),
    ("left", "right"),
    ("term", "definition"),
    ("concept", "meaning"),
    ("front", "back"),
    ("question", "answer"),
)

TRUE_FALSE_OPTIONS = ("True", "False")

GENERIC_INSTRUCTIONS = {
    BlockType.ORDERING: "Arrange the items in the correct order.",
    BlockType.CATEGORIZATION: "Sort the items into the correct categories.",
    BlockType.MEMORY_GAME: "Find the matching pairs.",
}

BULLET_PATTERN = re.compile(r"^\s*[-*•]\s?(.+)$", re.MULTILINE)
LIST_PREFIX = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s*")
CATEGORY_SUFFIX = re.compile(r"^(.+?)\s*(?:\(([^()]+)\)|(?:->|→|:)\s*(.+))$")
UNDERSCORE_BLANK = re.compile(r"_{3,}")
LETTER_ANSWER = re.compile(r"^\(?([A-Za-z])[).]?$")


# =============================================================================
# Field Helpers
# =============================================================================


def _as_text(value: Any, keys: tuple[str, ...] = FIELD_ALIASES["question_object"]) -> str:
    """Render a scalar or a {text: ...}-style object as stripped text."""
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, dict):
        for key in keys:
            if value.get(key):
                return _as_text(value[key], keys)
        return ""
    if isinstance(value, (list, tuple)):
        return ""
    return str(value).strip()


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) > 0 if not isinstance(value, str) else bool(value.strip())
    return True


def _first(sources: list[dict[str, Any]], field: str) -> Any:
    """First present value for any alias of `field`, alias order before source order."""
    for alias in FIELD_ALIASES[field]:
        for source in sources:
            if isinstance(source, dict) and _is_present(source.get(alias)):
                return source[alias]
    return None


def _text_list(values: Any) -> list[str]:
    if not isinstance(values, (list, tuple)):
        return []
    return [t for t in (_as_text(v) for v in values) if t]


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for v in values:
        if v not in seen:
            seen.add(v)
            result.append(v)
    return result


def fold_tag(tag: Any) -> str:
    """Canonical spelling of an external type tag."""
    return re.sub(r"[\s-]+", "_", str(tag).strip().lower())


def unwrap(item: RawItem) -> dict[str, Any]:
    """Find the payload: data.data, then data, then interactive_question, then the item."""
    data = item.get("data")
    if isinstance(data, dict):
        inner = data.get("data")
        if isinstance(inner, dict) and inner:
            return inner
        if data:
            return data
    question = item.get("interactive_question")
    if isinstance(question, dict) and question:
        return question
    return item


def resolve_type(item: RawItem, payload: dict[str, Any] | None = None) -> tuple[str, BlockType]:
    """
    Resolve (folded tag, block variant) for a raw item.

    Missing tag -> multiple_choice. Unknown tag -> FALLBACK_TYPE.
    """
    payload = payload if payload is not None else unwrap(item)
    raw_tag = _first([item, payload], "type")
    tag = fold_tag(raw_tag) if _is_present(raw_tag) else DEFAULT_TAG
    block_type = TYPE_ALIASES.get(tag)
    if block_type is None:
        logger.warning(f"Unknown interaction type '{raw_tag}', normalizing as {FALLBACK_TYPE.value}")
        block_type = FALLBACK_TYPE
    return tag, block_type


# =============================================================================
# Normalizer
# =============================================================================


class BlockNormalizer:
    """
    Normalizes raw items into ContentBlocks.

    Usage:
        normalizer = BlockNormalizer()
        block = normalizer.normalize(raw_item)
        if block is None:
            ...  # skip the item
    """

    def __init__(
        self,
        id_factory: IdFactory = new_block_id,
        strict_answers: bool | None = None,
    ):
        """
        Args:
            id_factory: Produces block ids; inject a counter for deterministic output
            strict_answers: Reject multiple-choice items whose correct answer cannot be
                resolved. When False, the first option is used and the block is marked
                with answerInferred. Defaults to settings.normalizer_strict_answers.
        """
        if strict_answers is None:
            from config import get_settings

            strict_answers = get_settings().normalizer_strict_answers
        self.id_factory = id_factory
        self.strict_answers = strict_answers
        self._routines: dict[BlockType, Callable[[str, RawItem, dict[str, Any]], tuple[dict, dict]]] = {
            BlockType.MULTIPLE_CHOICE: self._multiple_choice,
            BlockType.OPEN_QUESTION: self._open_question,
            BlockType.ORDERING: self._ordering,
            BlockType.CATEGORIZATION: self._categorization,
            BlockType.FILL_IN_BLANKS: self._fill_in_blanks,
            BlockType.AUDIO_RESPONSE: self._audio_response,
            BlockType.MEMORY_GAME: self._memory_game,
        }

    def normalize(self, item: RawItem | None) -> ContentBlock | None:
        """Normalize one raw item. Returns None when no valid block can be built."""
        if not isinstance(item, dict) or not item:
            return None

        try:
            payload = unwrap(item)
            tag, block_type = resolve_type(item, payload)
            content, extra_metadata = self._routines[block_type](tag, item, payload)

            metadata = self._common_metadata(item, payload)
            metadata.update(extra_metadata)
            metadata["score"] = SCORE_WEIGHTS[block_type]

            return make_block(block_type, content, metadata, id_factory=self.id_factory)

        except NormalizationFailure as e:
            logger.warning(f"Dropping item: {e}")
            return None
        except ValidationError as e:
            logger.warning(f"Dropping item that failed content validation: {e.error_count()} error(s)")
            return None
        except Exception as e:
            logger.error(f"Error normalizing item: {e}")
            return None

    def normalize_many(self, items: list[RawItem | None]) -> list[ContentBlock]:
        """Normalize a list, skipping items that yield no block."""
        blocks = []
        for item in items:
            block = self.normalize(item)
            if block is not None:
                blocks.append(block)
        return blocks

    # -------------------------------------------------------------------------
    # Shared
    # -------------------------------------------------------------------------

    def _common_metadata(self, item: RawItem, payload: dict[str, Any]) -> dict[str, Any]:
        sources = [item, payload]
        metadata: dict[str, Any] = {
            "bloom_level": _as_text(_first(sources, "bloom_level")) or None,
            "feedback_correct": _as_text(_first(sources, "feedback_correct")) or None,
            "feedback_incorrect": _as_text(_first(sources, "feedback_incorrect")) or None,
            "source_reference": _as_text(_first(sources, "source_reference")) or None,
            "teacher_tip": _as_text(_first(sources, "teacher_tip")) or None,
        }
        hints = _text_list(_first([payload, item], "hints"))
        if hints:
            metadata["progressive_hints"] = hints
        return metadata

    def _question(self, item: RawItem, payload: dict[str, Any]) -> str:
        return _as_text(_first([payload, item], "question"))

    # -------------------------------------------------------------------------
    # Multiple choice / true-false
    # -------------------------------------------------------------------------

    def _multiple_choice(self, tag: str, item: RawItem, payload: dict[str, Any]) -> tuple[dict, dict]:
        question = self._question(item, payload)
        if not question:
            raise NormalizationFailure("multiple-choice item has no question")

        raw_options = _first([payload, item], "options")
        raw_options = raw_options if isinstance(raw_options, list) else []

        options: list[str] = []
        flagged: str | None = None
        rich_options: list[dict[str, Any]] = []
        for raw in raw_options:
            if isinstance(raw, dict):
                text = _as_text(raw, FIELD_ALIASES["option_text"])
                rich_options.append(raw)
                if text and flagged is None and any(raw.get(k) is True for k in FIELD_ALIASES["option_flag"]):
                    flagged = text
            else:
                text = _as_text(raw)
            if text:
                options.append(text)
        options = _dedupe(options)

        if len(options) < 2:
            if tag in TRUE_FALSE_TAGS:
                options = list(TRUE_FALSE_OPTIONS)
            else:
                raise NormalizationFailure(f"multiple-choice item has {len(options)} option(s)")

        metadata: dict[str, Any] = {}
        if rich_options:
            metadata["rich_options"] = rich_options

        answer = flagged or self._resolve_answer(options, item, payload)
        if answer is None:
            if self.strict_answers:
                raise NormalizationFailure(f"no resolvable correct answer for '{question[:60]}'")
            logger.warning(f"No correct answer for '{question[:60]}', defaulting to first option")
            answer = options[0]
            metadata["answer_inferred"] = True

        return {"question": question, "options": options, "correct_answer": answer}, metadata

    def _resolve_answer(self, options: list[str], item: RawItem, payload: dict[str, Any]) -> str | None:
        sources = [payload, item]

        raw_answer = _first(sources, "correct_answer")
        if isinstance(raw_answer, bool):
            raw_answer = TRUE_FALSE_OPTIONS[0] if raw_answer else TRUE_FALSE_OPTIONS[1]
        answer = _as_text(raw_answer, FIELD_ALIASES["option_text"]) if not isinstance(raw_answer, int) else ""
        if answer:
            match = match_option(answer, options)
            if match is not None:
                return match

        raw_index = _first(sources, "correct_index")
        if raw_index is None and isinstance(raw_answer, int) and not isinstance(raw_answer, bool):
            raw_index = raw_answer
        try:
            index = int(raw_index) if raw_index is not None else None
        except (TypeError, ValueError):
            index = None
        if index is not None and 0 <= index < len(options):
            return options[index]

        return None

    # -------------------------------------------------------------------------
    # Open question
    # -------------------------------------------------------------------------

    def _open_question(self, tag: str, item: RawItem, payload: dict[str, Any]) -> tuple[dict, dict]:
        question = self._question(item, payload)
        if not question:
            raise NormalizationFailure("open question has no question text")

        metadata: dict[str, Any] = {}
        raw_answer = _first([payload, item], "model_answer")
        if isinstance(raw_answer, list):
            lines = _text_list(raw_answer)
            model_answer = "\n".join(f"• {line}" for line in lines)
        else:
            model_answer = _as_text(raw_answer, FIELD_ALIASES["model_answer_object"])
        if model_answer:
            metadata["model_answer"] = model_answer

        return {"question": question}, metadata

    # -------------------------------------------------------------------------
    # Ordering
    # -------------------------------------------------------------------------

    def _ordering(self, tag: str, item: RawItem, payload: dict[str, Any]) -> tuple[dict, dict]:
        question = self._question(item, payload)
        raw_sequence = _first([payload, item], "sequence")
        sequence = self._sequence_items(raw_sequence)
        instruction = question

        if len(sequence) < 2:
            # Keep a lead-in line as the instruction; the list under it becomes the steps
            instruction, listing = split_lead_in(question)
            sequence = split_sequence(listing) if instruction else []
            if len(sequence) < 2:
                instruction, sequence = "", split_sequence(question)
            if len(sequence) >= 2:
                logger.warning(f"Ordering item recovered {len(sequence)} steps from its prose")

        if len(sequence) < 2:
            raise NormalizationFailure(f"ordering item has {len(sequence)} recoverable step(s)")

        return {
            "instruction": instruction or GENERIC_INSTRUCTIONS[BlockType.ORDERING],
            "correct_order": sequence,
        }, {}

    def _sequence_items(self, raw: Any) -> list[str]:
        if not isinstance(raw, list):
            return []

        # Sort by an explicit position when every entry carries one
        positions = [
            _first([entry], "sequence_position") if isinstance(entry, dict) else None for entry in raw
        ]
        if raw and all(isinstance(p, (int, float)) and not isinstance(p, bool) for p in positions):
            raw = [entry for _, entry in sorted(zip(positions, raw), key=lambda pair: pair[0])]

        items = []
        for entry in raw:
            text = _as_text(entry, FIELD_ALIASES["sequence_text"])
            if text:
                items.append(text)
        return items

    # -------------------------------------------------------------------------
    # Categorization
    # -------------------------------------------------------------------------

    def _categorization(self, tag: str, item: RawItem, payload: dict[str, Any]) -> tuple[dict, dict]:
        sources = [payload, item]
        question = self._question(item, payload)

        categories: list[str] = []
        items: list[dict[str, str]] = []

        raw_pairs = _first(sources, "matching_pairs")
        if isinstance(raw_pairs, list) and (tag in MATCHING_TAGS or not _first(sources, "categories")):
            for pair in raw_pairs:
                if not isinstance(pair, dict):
                    continue
                left = _as_text(_first([pair], "matching_left"))
                right = _as_text(_first([pair], "matching_right"))
                if left and right:
                    items.append({"text": left, "category": right})
                    if right not in categories:
                        categories.append(right)
        else:
            raw_categories = _first(sources, "categories")
            for entry in raw_categories if isinstance(raw_categories, list) else []:
                if isinstance(entry, dict):
                    name = _as_text(_first([entry], "category_name"))
                    if not name:
                        continue
                    categories.append(name)
                    # {name, items: [...]} carries its own members
                    for member in _text_list(_first([entry], "category_items")):
                        items.append({"text": member, "category": name})
                else:
                    name = _as_text(entry)
                    if name:
                        categories.append(name)
            categories = _dedupe(categories)

            raw_items = _first(sources, "category_items")
            for entry in raw_items if isinstance(raw_items, list) else []:
                placed = self._place_item(entry, categories)
                if placed is not None:
                    items.append(placed)

            if not categories and items:
                categories = _dedupe([i["category"] for i in items])

        if not items and question:
            items = bullet_items(question, categories)
            if items:
                logger.warning(f"Categorization item recovered {len(items)} entries from bullet text")

        known = set(categories)
        items = [i for i in items if i["category"] in known]

        if not categories or len(items) < 2:
            raise NormalizationFailure(
                f"categorization item has {len(categories)} categories and {len(items)} placeable item(s)"
            )

        return {
            "question": question or GENERIC_INSTRUCTIONS[BlockType.CATEGORIZATION],
            "categories": categories,
            "items": items,
        }, {}

    def _place_item(self, entry: Any, categories: list[str]) -> dict[str, str] | None:
        if isinstance(entry, dict):
            text = _as_text(_first([entry], "item_text"))
            if not text:
                return None
            category = _as_text(_first([entry], "item_category"))
            if category:
                return {"text": text, "category": match_category(category, categories) or category}
            index = _first([entry], "item_category_index")
            if isinstance(index, int) and not isinstance(index, bool) and 0 <= index < len(categories):
                return {"text": text, "category": categories[index]}
            if categories:
                logger.warning(f"Item '{text[:40]}' has no category, placing it in '{categories[0]}'")
                return {"text": text, "category": categories[0]}
            return None

        text = _as_text(entry)
        if text and categories:
            logger.warning(f"Item '{text[:40]}' has no category, placing it in '{categories[0]}'")
            return {"text": text, "category": categories[0]}
        return None

    # -------------------------------------------------------------------------
    # Fill in the blanks
    # -------------------------------------------------------------------------

    def _fill_in_blanks(self, tag: str, item: RawItem, payload: dict[str, Any]) -> tuple[dict, dict]:
        sentence = _as_text(_first([payload, item], "sentence"))
        word_bank = _text_list(_first([payload, item], "word_bank"))

        if not sentence:
            raise NormalizationFailure("fill-in-blanks item has no text")

        if not BLANK_PATTERN.search(sentence):
            repaired = bracket_words(sentence, word_bank)
            if repaired is None:
                raise NormalizationFailure("fill-in-blanks text has no [hidden] words and no usable word bank")
            logger.warning("Fill-in-blanks text had no brackets, rebuilt blanks from the word bank")
            sentence = repaired

        metadata: dict[str, Any] = {}
        if word_bank:
            metadata["word_bank"] = word_bank
        return {"sentence": sentence}, metadata

    # -------------------------------------------------------------------------
    # Audio response
    # -------------------------------------------------------------------------

    def _audio_response(self, tag: str, item: RawItem, payload: dict[str, Any]) -> tuple[dict, dict]:
        question = self._question(item, payload)
        if not question:
            raise NormalizationFailure("audio item has no question")

        raw_duration = _first([payload, item], "max_duration")
        try:
            duration = int(raw_duration) if raw_duration is not None else 60
        except (TypeError, ValueError):
            duration = 60
        if duration <= 0:
            duration = 60

        return {
            "question": question,
            "description": _as_text(_first([payload, item], "audio_description")),
            "max_duration": duration,
        }, {}

    # -------------------------------------------------------------------------
    # Memory game
    # -------------------------------------------------------------------------

    def _memory_game(self, tag: str, item: RawItem, payload: dict[str, Any]) -> tuple[dict, dict]:
        raw_pairs = _first([payload, item], "memory_pairs")
        pairs = []
        for entry in raw_pairs if isinstance(raw_pairs, list) else []:
            pair = to_pair(entry)
            if pair is not None:
                pairs.append({"card_a": pair[0], "card_b": pair[1]})

        if len(pairs) < 2:
            raise NormalizationFailure(f"memory game has {len(pairs)} usable pair(s)")

        question = self._question(item, payload)
        return {
            "question": question or GENERIC_INSTRUCTIONS[BlockType.MEMORY_GAME],
            "pairs": pairs,
        }, {}


# =============================================================================
# Repair Heuristics
# =============================================================================


def match_option(answer: str, options: list[str]) -> str | None:
    """
    Match an answer string to an option.

    Order: exact, case-insensitive, option letter (A/B/C...), then containment.
    """
    if answer in options:
        return answer

    lowered = answer.strip().lower()
    for option in options:
        if option.lower() == lowered:
            return option

    letter = LETTER_ANSWER.match(answer.strip())
    if letter:
        index = ord(letter.group(1).upper()) - ord("A")
        if 0 <= index < len(options):
            return options[index]

    for option in options:
        candidate = option.lower()
        if lowered in candidate or candidate in lowered:
            return option
    return None


def match_category(name: str, categories: list[str]) -> str | None:
    if name in categories:
        return name
    lowered = name.strip().lower()
    for category in categories:
        if category.lower() == lowered:
            return category
    return None


def split_lead_in(text: str) -> tuple[str, str]:
    """Separate a lead-in line ('Put these in order:') from the list under it."""
    lines = [line for line in (text or "").splitlines() if line.strip()]
    if len(lines) >= 3 and not LIST_PREFIX.match(lines[0]) and lines[0].rstrip().endswith((":", "?")):
        return lines[0].strip(), "\n".join(lines[1:])
    return "", text


def split_sequence(
text: str) -> list[str]:
    """Recover sequence steps from prose: lines first, then sentences."""
    if not text or len(text) <= 20:
        return []

    lines = [LIST_PREFIX.sub("", line).strip() for line in text.splitlines()]
    lines = [line for line in lines if line]
    if len(lines) >= 2:
        return lines

    sentences = [s.strip() for s in text.split(".")]
    return [s for s in sentences if len(s) > 5]


def bullet_items(text: str, categories: list[str]) -> list[dict[str, str]]:
    """
    Parse '- item' lines out of question text.

    A line naming a known category ('item (Cat)', 'item: Cat', 'item -> Cat')
    goes to that category; other lines go to the first category.
    """
    matches = BULLET_PATTERN.findall(text)
    if len(matches) < 2 or not categories:
        return []

    items = []
    for line in matches:
        line = line.strip()
        suffix = CATEGORY_SUFFIX.match(line)
        if suffix:
            label = suffix.group(2) or suffix.group(3) or ""
            category = match_category(label.strip(), categories)
            if category:
                items.append({"text": suffix.group(1).strip(), "category": category})
                continue
        items.append({"text": line, "category": categories[0]})
    return items


def bracket_words(sentence: str, word_bank: list[str]) -> str | None:
    """
    Rebuild [blanks] from a word bank.

    '___' runs are filled in order when their count matches the bank; otherwise
    the first whole-word occurrence of each bank word is bracketed.
    """
    if not word_bank:
        return None

    runs = UNDERSCORE_BLANK.findall(sentence)
    if runs and len(runs) == len(word_bank):
        words = iter(word_bank)
        return UNDERSCORE_BLANK.sub(lambda _: f"[{next(words)}]", sentence)

    result = sentence
    found = 0
    for word in word_bank:
        pattern = re.compile(rf"(?<![\[\w]){re.escape(word)}(?![\]\w])", re.IGNORECASE)
        result, count = pattern.subn(lambda m: f"[{m.group(0)}]", result, count=1)
        found += count
    return result if found else None


def to_pair(entry: Any) -> tuple[str, str] | None:
    if isinstance(entry, (list, tuple)) and len(entry) == 2:
        a, b = _as_text(entry[0]), _as_text(entry[1])
        return (a, b) if a and b else None
    if isinstance(entry, dict):
        for left, right in PAIR_KEYS:
            a, b = _as_text(entry.get(left)), _as_text(entry.get(right))
            if a and b:
                return a, b
    return None


_default_normalizer: BlockNormalizer | None = None


def normalize(item: RawItem | None) -> ContentBlock | None:
    """Normalize with a shared default BlockNormalizer."""
    global _default_normalizer
    if _default_normalizer is None:
        _default_normalizer = BlockNormalizer()
    return _default_normalizer.normalize(item)
