"""
Outline (skeleton) generation.

One LLM call reads the whole topic or source text and returns an exact-N step
plan. Each step gets a narrative focus and a forbidden-topics list, so the
per-step generator can stay inside its own chunk.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from config import get_settings
from unitforge.content.document import AudienceBand, GenerationMode, LengthTier
from unitforge.content.normalizer import TYPE_ALIASES, fold_tag
from unitforge.errors import UnitForgeError
from unitforge.generation.prompts import BLOOM_INTERACTIONS, bloom_levels, build_outline_prompt
from unitforge.llm.parsing import parse_json_object
from unitforge.llm.transport import CompletionOptions, LLMTransport


@dataclass(frozen=True)
class SkeletonStep:
    """One planned step of a unit."""

    index: int  # 1-based
    title: str
    narrative_focus: str
    cognitive_level: str
    suggested_interaction_type: str
    forbidden_topics: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "step_number": self.index,
            "title": self.title,
            "narrative_focus": self.narrative_focus,
            "forbidden_topics": list(self.forbidden_topics),
            "bloom_level": self.cognitive_level,
            "suggested_interaction_type": self.suggested_interaction_type,
        }


@dataclass(frozen=True)
class UnitSkeleton:
    """Ordered step plan for a unit."""

    title: str
    steps: tuple[SkeletonStep, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {"unit_title": self.title, "steps": [s.to_dict() for s in self.steps]}


def complete_forbidden_topics(steps: list[SkeletonStep]) -> list[SkeletonStep]:
    """Add every other step's focus to each step's forbidden list."""
    completed = []
    for step in steps:
        forbidden = list(step.forbidden_topics)
        for other in steps:
            if other.index != step.index and other.narrative_focus and other.narrative_focus not in forbidden:
                forbidden.append(other.narrative_focus)
        completed.append(
            SkeletonStep(
                index=step.index,
                title=step.title,
                narrative_focus=step.narrative_focus,
                cognitive_level=step.cognitive_level,
                suggested_interaction_type=step.suggested_interaction_type,
                forbidden_topics=tuple(forbidden),
            )
        )
    return completed


def _topic_list(raw: Any) -> tuple[str, ...]:
    """Forbidden topics as a tuple of phrases. A lone string is one topic."""
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple)):
        return ()
    return tuple(str(t).strip() for t in raw if isinstance(t, (str, int, float)) and str(t).strip())


def _interaction_tag(raw: Any, cognitive_level: str) -> str:
    if raw:
        tag = fold_tag(raw)
        if tag in TYPE_ALIASES:
            return tag
    return BLOOM_INTERACTIONS.get(cognitive_level, ("multiple_choice",))[0]


def parse_skeleton(data: dict[str, Any], topic: str, step_count: int) -> UnitSkeleton | None:
    """Build a UnitSkeleton from outline JSON. None when there is no usable steps array."""
    raw_steps = data.get("steps")
    if not isinstance(raw_steps, list) or not raw_steps:
        logger.warning("Outline response has no steps array")
        return None

    if len(raw_steps) != step_count:
        logger.warning(f"Outline returned {len(raw_steps)} steps, expected {step_count}")
    raw_steps = [s for s in raw_steps if isinstance(s, dict)][:step_count]

    levels = bloom_levels(len(raw_steps))
    steps = []
    for i, raw in enumerate(raw_steps):
        level = str(raw.get("bloom_level") or raw.get("cognitive_level") or levels[i]).strip()
        steps.append(
            SkeletonStep(
                index=i + 1,
                title=str(raw.get("title") or f"Step {i + 1}").strip(),
                narrative_focus=str(raw.get("narrative_focus") or raw.get("focus") or "").strip(),
                cognitive_level=level,
                suggested_interaction_type=_interaction_tag(
                    raw.get("suggested_interaction_type") or raw.get("interaction_type"), level
                ),
                forbidden_topics=_topic_list(raw.get("forbidden_topics")),
            )
        )

    if not steps:
        return None

    title = str(data.get("unit_title") or data.get("title") or topic).strip()
    return UnitSkeleton(title=title, steps=tuple(complete_forbidden_topics(steps)))


class OutlineGenerator:
    """Produces a UnitSkeleton for a topic."""

    def __init__(self, transport: LLMTransport, language: str | None = None):
        settings = get_settings()
        self.transport = transport
        self.language = language or settings.output_language
        self.source_limit = settings.outline_source_limit
        self.temperature = settings.llm_temperature
        self.timeout_ms = settings.llm_timeout_ms

    async def generate_outline(
        self,
        topic: str,
        source_text: str | None = None,
        audience_band: AudienceBand = AudienceBand.MIDDLE,
        length_tier: LengthTier = LengthTier.MEDIUM,
        mode: GenerationMode = GenerationMode.LEARNING,
    ) -> UnitSkeleton | None:
        """
        Generate the step plan.

        Returns:
            UnitSkeleton, or None if the call failed or the response had no steps
        """
        step_count = LengthTier(length_tier).step_count
        prompt = build_outline_prompt(
            topic=topic,
            step_count=step_count,
            audience_band=AudienceBand(audience_band),
            mode=GenerationMode(mode),
            source_text=source_text,
            language=self.language,
            source_limit=self.source_limit,
        )

        logger.info(f"Generating {step_count}-step outline for '{topic}'")
        try:
            text = await self.transport.complete(
                prompt,
                CompletionOptions(json_mode=True, temperature=self.temperature, timeout_ms=self.timeout_ms),
            )
            data = parse_json_object(text, required_key="steps")
            return parse_skeleton(data, topic, step_count)
        except UnitForgeError as e:
            logger.error(f"Outline generation failed for '{topic}': {e}")
            return None
        except Exception as e:
            logger.error(f"Unexpected error generating outline for '{topic}': {e}")
            return None
