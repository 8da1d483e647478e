"""
Generated document: the unit of hand-off between pipeline stages.

Documents are immutable. Every stage (generation, auto-fix, workflow
acceptance) returns a new document instead of editing the one it was given.
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

from unitforge.content.blocks import ContentBlock


class AudienceBand(str, Enum):
    """Grade band the content is written for."""

    ELEMENTARY = "elementary"
    MIDDLE = "middle"
    HIGH = "high"


class LengthTier(str, Enum):
    """Unit length; the value maps to a step count."""

    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"

    @property
    def step_count(self) -> int:
        return {"short": 3, "medium": 5, "long": 7}[self.value]


class GenerationMode(str, Enum):
    """
    learning: teach text followed by a checkpoint per step
    exam: questions only, no teaching text or hints
    game: interaction only
    """

    LEARNING = "learning"
    EXAM = "exam"
    GAME = "game"

    @property
    def allows_teaching_text(self) -> bool:
        return self is GenerationMode.LEARNING


@dataclass(frozen=True)
class DocumentStep:
    """One outline step with its rendered blocks."""

    step_number: int
    title: str
    blocks: tuple[ContentBlock, ...] = ()
    bloom_level: str | None = None
    narrative_focus: str = ""
    forbidden_topics: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "step_number": self.step_number,
            "title": self.title,
            "bloom_level": self.bloom_level,
            "narrative_focus": self.narrative_focus,
            "forbidden_topics": list(self.forbidden_topics),
            "blocks": [b.to_dict() for b in self.blocks],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DocumentStep:
        return cls(
            step_number=int(data.get("step_number", 0)),
            title=data.get("title", ""),
            bloom_level=data.get("bloom_level"),
            narrative_focus=data.get("narrative_focus", ""),
            forbidden_topics=tuple(data.get("forbidden_topics", [])),
            blocks=tuple(ContentBlock.from_dict(b) for b in data.get("blocks", [])),
        )


@dataclass(frozen=True)
class GeneratedDocument:
    """A complete generated unit."""

    title: str
    topic: str
    steps: tuple[DocumentStep, ...] = ()
    audience_band: AudienceBand = AudienceBand.MIDDLE
    mode: GenerationMode = GenerationMode.LEARNING
    metadata: dict[str, Any] = field(default_factory=dict)
    skipped_steps: tuple[int, ...] = ()  # step numbers dropped during normalization

    @property
    def blocks(self) -> list[ContentBlock]:
        """All blocks in document order."""
        return [block for step in self.steps for block in step.blocks]

    def iter_blocks(self) -> Iterator[tuple[DocumentStep, int, ContentBlock]]:
        for step in self.steps:
            for i, block in enumerate(step.blocks):
                yield step, i, block

    def with_metadata(self, **updates: Any) -> GeneratedDocument:
        """Copy with metadata keys added or replaced."""
        return dataclasses.replace(self, metadata={**self.metadata, **updates})

    def with_blocks(self, blocks: list[ContentBlock]) -> GeneratedDocument:
        """
        Copy with the flat block list replaced, keeping per-step block counts.

        Raises:
            ValueError: If the block count differs from the current document
        """
        if len(blocks) != len(self.blocks):
            raise ValueError(f"Expected {len(self.blocks)} blocks, got {len(blocks)}")

        steps = []
        cursor = 0
        for step in self.steps:
            size = len(step.blocks)
            steps.append(dataclasses.replace(step, blocks=tuple(blocks[cursor : cursor + size])))
            cursor += size
        return dataclasses.replace(self, steps=tuple(steps))

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "topic": self.topic,
            "audience_band": self.audience_band.value,
            "mode": self.mode.value,
            "metadata": dict(self.metadata),
            "skipped_steps": list(self.skipped_steps),
            "steps": [s.to_dict() for s in self.steps],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GeneratedDocument:
        return cls(
            title=data.get("title", ""),
            topic=data.get("topic", ""),
            audience_band=AudienceBand(data.get("audience_band", AudienceBand.MIDDLE.value)),
            mode=GenerationMode(data.get("mode", GenerationMode.LEARNING.value)),
            metadata=dict(data.get("metadata", {})),
            skipped_steps=tuple(data.get("skipped_steps", [])),
            steps=tuple(DocumentStep.from_dict(s) for s in data.get("steps", [])),
        )
