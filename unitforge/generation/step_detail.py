"""
Per-step detail generation.

Turns one SkeletonStep into a raw item (teach text + interaction payload).
The output is not checked for structure here; it goes straight to the
Block Normalizer, and the validator judges the assembled document.
"""
from __future__ import annotations

from typing import Any

from loguru import logger

from config import get_settings
from unitforge.content.document import AudienceBand, GenerationMode
from unitforge.errors import UnitForgeError
from unitforge.generation.outline import SkeletonStep
from unitforge.generation.prompts import build_step_prompt
from unitforge.llm.parsing import parse_json_object
from unitforge.llm.transport import CompletionOptions, LLMTransport

HINT_KEYS = ("progressive_hints", "hints")


def enforce_exam_mode(item: dict[str, Any]) -> dict[str, Any]:
    """Strip teaching text and hints, whatever the model returned."""
    cleaned = dict(item)
    cleaned["teach_content"] = ""
    for key in HINT_KEYS:
        if key in cleaned:
            cleaned[key] = []

    data = cleaned.get("data")
    if isinstance(data, dict):
        data = dict(data)
        for key in HINT_KEYS:
            if key in data:
                data[key] = []
        inner = data.get("data")
        if isinstance(inner, dict):
            data["data"] = {k: ([] if k in HINT_KEYS else v) for k, v in inner.items()}
        cleaned["data"] = data
    return cleaned


class StepDetailGenerator:
    """Generates the raw item for a single outline step."""

    def __init__(self, transport: LLMTransport, language: str | None = None):
        settings = get_settings()
        self.transport = transport
        self.language = language or settings.output_language
        self.source_limit = settings.step_source_limit
        self.temperature = settings.llm_temperature
        self.timeout_ms = settings.llm_timeout_ms

    async def generate_step_detail(
        self,
        topic: str,
        step: SkeletonStep,
        audience_band: AudienceBand = AudienceBand.MIDDLE,
        source_text: str | None = None,
        mode: GenerationMode = GenerationMode.LEARNING,
        total_steps: int | None = None,
    ) -> dict[str, Any] | None:
        """
        Generate the raw item for one step.

        Returns:
            Raw item dict, or None if the call failed or returned no object
        """
        mode = GenerationMode(mode)
        prompt = build_step_prompt(
            topic=topic,
            step=step,
            total_steps=total_steps or step.index,
            audience_band=AudienceBand(audience_band),
            mode=mode,
            source_text=source_text,
            language=self.language,
            source_limit=self.source_limit,
        )

        try:
            text = await self.transport.complete(
                prompt,
                CompletionOptions(json_mode=True, temperature=self.temperature, timeout_ms=self.timeout_ms),
            )
            item = parse_json_object(text)
        except UnitForgeError as e:
            logger.error(f"Step {step.index} ('{step.title}') generation failed: {e}")
            return None
        except Exception as e:
            logger.error(f"Unexpected error generating step {step.index} ('{step.title}'): {e}")
            return None

        item.setdefault("step_number", step.index)
        item.setdefault("bloom_level", step.cognitive_level)
        if not (item.get("selected_interaction") or item.get("type")):
            item["selected_interaction"] = step.suggested_interaction_type

        if mode is GenerationMode.EXAM:
            item = enforce_exam_mode(item)
        return item
