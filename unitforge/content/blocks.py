"""
Content block model.

A ContentBlock is the only shape downstream consumers ever see. Each block
type has a fixed content model; constructing a block validates its content,
so a block that exists is a block that satisfies its minimum shape.

Serialized keys are camelCase (correctAnswer, correctOrder, cardA) to match
the document format consumed by the player.
"""
from __future__ import annotations

import re
import uuid
from enum import Enum
from typing import Any, Callable, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

BLANK_PATTERN = re.compile(r"\[[^\[\]]+\]")


class BlockType(str, Enum):
    """Block variants a document may contain."""

    TEXT = "text"
    MULTIPLE_CHOICE = "multiple-choice"
    OPEN_QUESTION = "open-question"
    ORDERING = "ordering"
    CATEGORIZATION = "categorization"
    FILL_IN_BLANKS = "fill-in-blanks"
    MEMORY_GAME = "memory-game"
    AUDIO_RESPONSE = "audio-response"
    INTERACTIVE_CHAT = "interactive-chat"

    @property
    def is_interactive(self) -> bool:
        return self is not BlockType.TEXT


# Fixed score weight per interactive type
SCORE_WEIGHTS: dict[BlockType, int] = {
    BlockType.MULTIPLE_CHOICE: 10,
    BlockType.OPEN_QUESTION: 20,
    BlockType.ORDERING: 15,
    BlockType.CATEGORIZATION: 20,
    BlockType.FILL_IN_BLANKS: 15,
    BlockType.AUDIO_RESPONSE: 20,
    BlockType.MEMORY_GAME: 15,
}


def _strip_required(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


class _Payload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )


# =============================================================================
# Content Models
# =============================================================================


class TextContent(_Payload):
    text: str

    check_text = field_validator("text")(_strip_required)


class MultipleChoiceContent(_Payload):
    question: str
    options: list[str] = Field(min_length=2)
    correct_answer: str

    check_question = field_validator("question")(_strip_required)

    @field_validator("options")
    @classmethod
    def check_options(cls, v: list[str]) -> list[str]:
        return [_strip_required(o) for o in v]

    @model_validator(mode="after")
    def answer_is_an_option(self) -> MultipleChoiceContent:
        if self.correct_answer not in self.options:
            raise ValueError("correct_answer must be one of the options")
        return self


class OpenQuestionContent(_Payload):
    question: str

    check_question = field_validator("question")(_strip_required)


class OrderingContent(_Payload):
    instruction: str
    correct_order: list[str] = Field(min_length=2)

    check_instruction = field_validator("instruction")(_strip_required)

    @field_validator("correct_order")
    @classmethod
    def check_items(cls, v: list[str]) -> list[str]:
        return [_strip_required(i) for i in v]


class CategorizationItem(_Payload):
    text: str
    category: str

    check_text = field_validator("text")(_strip_required)


class CategorizationContent(_Payload):
    question: str
    categories: list[str] = Field(min_length=1)
    items: list[CategorizationItem] = Field(min_length=2)

    check_question = field_validator("question")(_strip_required)

    @model_validator(mode="after")
    def items_use_known_categories(self) -> CategorizationContent:
        known = set(self.categories)
        unknown = [i.category for i in self.items if i.category not in known]
        if unknown:
            raise ValueError(f"items reference unknown categories: {unknown}")
        return self


class FillInBlanksContent(_Payload):
    sentence: str

    @field_validator("sentence")
    @classmethod
    def has_blank(cls, v: str) -> str:
        v = _strip_required(v)
        if not BLANK_PATTERN.search(v):
            raise ValueError("sentence must contain at least one [hidden] word")
        return v


class MemoryPair(_Payload):
    card_a: str
    card_b: str

    check_cards = field_validator("card_a", "card_b")(_strip_required)


class MemoryGameContent(_Payload):
    question: str
    pairs: list[MemoryPair] = Field(min_length=2)

    check_question = field_validator("question")(_strip_required)


class AudioResponseContent(_Payload):
    question: str
    description: str = ""
    max_duration: int = Field(default=60, gt=0)

    check_question = field_validator("question")(_strip_required)


class InteractiveChatContent(_Payload):
    title: str
    description: str = ""

    check_title = field_validator("title")(_strip_required)


BlockContent = Union[
    TextContent,
    MultipleChoiceContent,
    OpenQuestionContent,
    OrderingContent,
    CategorizationContent,
    FillInBlanksContent,
    MemoryGameContent,
    AudioResponseContent,
    InteractiveChatContent,
]

CONTENT_MODELS: dict[BlockType, type[_Payload]] = {
    BlockType.TEXT: TextContent,
    BlockType.MULTIPLE_CHOICE: MultipleChoiceContent,
    BlockType.OPEN_QUESTION: OpenQuestionContent,
    BlockType.ORDERING: OrderingContent,
    BlockType.CATEGORIZATION: CategorizationContent,
    BlockType.FILL_IN_BLANKS: FillInBlanksContent,
    BlockType.MEMORY_GAME: MemoryGameContent,
    BlockType.AUDIO_RESPONSE: AudioResponseContent,
    BlockType.INTERACTIVE_CHAT: InteractiveChatContent,
}


# =============================================================================
# Metadata & Block
# =============================================================================


class BlockMetadata(BaseModel):
    """Pedagogical metadata; unknown keys are kept as-is."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
        protected_namespaces=(),
    )

    bloom_level: str | None = None
    feedback_correct: str | None = None
    feedback_incorrect: str | None = None
    source_reference: str | None = None
    score: int = 0
    progressive_hints: list[str] = Field(default_factory=list)
    teacher_tip: str | None = None

    # Variant extras
    model_answer: str | None = None
    word_bank: list[str] | None = None
    rich_options: list[dict[str, Any]] | None = None
    answer_inferred: bool = False
    bot_persona: str | None = None
    initial_message: str | None = None
    system_prompt: str | None = None


class ContentBlock(BaseModel):
    """A single typed block of a generated document."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    type: BlockType
    content: BlockContent
    metadata: BlockMetadata = Field(default_factory=BlockMetadata)

    @model_validator(mode="before")
    @classmethod
    def content_for_type(cls, data: Any) -> Any:
        # Validate content against the declared type's model, not whichever union member fits first
        if isinstance(data, dict) and "type" in data and "content" in data:
            block_type = BlockType(data["type"])
            model = CONTENT_MODELS[block_type]
            content = data["content"]
            if not isinstance(content, model):
                if isinstance(content, BaseModel):
                    content = content.model_dump()
                data = {**data, "type": block_type, "content": model.model_validate(content)}
        return data

    @property
    def is_interactive(self) -> bool:
        return self.type.is_interactive

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the document JSON shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContentBlock:
        return cls.model_validate(data)


IdFactory = Callable[[], str]


def new_block_id() -> str:
    """Default id factory."""
    return str(uuid.uuid4())


def make_block(
    block_type: BlockType,
    content: dict[str, Any],
    metadata: dict[str, Any] | None = None,
    id_factory: IdFactory = new_block_id,
) -> ContentBlock:
    """
    Build a block, validating its content.

    Raises:
        pydantic.ValidationError: If content does not satisfy the type's shape
    """
    return ContentBlock(
        id=id_factory(),
        type=block_type,
        content=content,
        metadata=BlockMetadata.model_validate(metadata or {}),
    )
