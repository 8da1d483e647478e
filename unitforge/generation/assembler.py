"""
Two-phase unit generation: outline, then concurrent step detail.

Steps are generated concurrently and re-assembled by step index. Each step
contributes its teach text (learning mode only) followed by its interactive
block. A step whose interaction cannot be normalized is dropped whole, text
included, so no text block is ever left without a checkpoint.
"""
from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from config import get_settings
from unitforge.content.blocks import BlockType, ContentBlock, IdFactory, make_block, new_block_id
from unitforge.content.document import (
    AudienceBand,
    DocumentStep,
    GeneratedDocument,
    GenerationMode,
    LengthTier,
)
from unitforge.content.normalizer import BlockNormalizer
from unitforge.generation.outline import OutlineGenerator, SkeletonStep, UnitSkeleton
from unitforge.generation.prompts import build_tutor_system_prompt
from unitforge.generation.step_detail import StepDetailGenerator
from unitforge.llm.transport import LLMTransport
from unitforge.workflow import GenerationFn


def tutor_block(
    topic: str,
    audience_band: AudienceBand,
    persona: str = "teacher",
    language: str = "English",
    id_factory: IdFactory = new_block_id,
) -> ContentBlock:
    """Interactive tutor chat block for the end of a unit."""
    return make_block(
        BlockType.INTERACTIVE_CHAT,
        {"title": f"Ask the tutor: {topic}", "description": "Questions about this unit? Ask here."},
        {
            "bot_persona": persona,
            "initial_message": f"Hi! Let's talk about {topic}. What would you like to explore?",
            "system_prompt": build_tutor_system_prompt(topic, persona, audience_band, language),
        },
        id_factory=id_factory,
    )


def assemble_step(
    step: SkeletonStep,
    item: dict[str, Any] | None,
    normalizer: BlockNormalizer,
    mode: GenerationMode,
) -> DocumentStep | None:
    """Build one DocumentStep; None if the step's interaction is unusable."""
    if item is None:
        logger.warning(f"Step {step.index} ('{step.title}') produced no item, skipping")
        return None

    interactive = normalizer.normalize(item)
    if interactive is None:
        logger.warning(f"Step {step.index} ('{step.title}') could not be normalized, skipping")
        return None

    blocks: list[ContentBlock] = []
    teach_content = str(item.get("teach_content") or "").strip()
    if teach_content and mode.allows_teaching_text:
        blocks.append(
            make_block(
                BlockType.TEXT,
                {"text": teach_content},
                {
                    "bloom_level": step.cognitive_level,
                    "teacher_tip": str(item.get("teacher_tip") or "").strip() or None,
                },
                id_factory=normalizer.id_factory,
            )
        )
    blocks.append(interactive)

    return DocumentStep(
        step_number=step.index,
        title=step.title,
        blocks=tuple(blocks),
        bloom_level=step.cognitive_level,
        narrative_focus=step.narrative_focus,
        forbidden_topics=step.forbidden_topics,
    )


class UnitGenerator:
    """
    Outline -> fan-out step detail -> normalize -> GeneratedDocument.

    Usage:
        generator = UnitGenerator(transport)
        document = await generator.generate("Photosynthesis", length_tier=LengthTier.SHORT)
    """

    def __init__(
        self,
        transport: LLMTransport,
        normalizer: BlockNormalizer | None = None,
        outline_generator: OutlineGenerator | None = None,
        step_generator: StepDetailGenerator | None = None,
        include_tutor_block: bool | None = None,
        tutor_persona: str | None = None,
        language: str | None = None,
    ):
        settings = get_settings()
        self.normalizer = normalizer or BlockNormalizer()
        self.outline_generator = outline_generator or OutlineGenerator(transport, language=language)
        self.step_generator = step_generator or StepDetailGenerator(transport, language=language)
        self.include_tutor_block = (
            settings.include_tutor_block if include_tutor_block is None else include_tutor_block
        )
        self.tutor_persona = tutor_persona or settings.tutor_persona
        self.language = language or settings.output_language

    async def generate(
        self,
        topic: str,
        source_text: str | None = None,
        audience_band: AudienceBand = AudienceBand.MIDDLE,
        length_tier: LengthTier = LengthTier.MEDIUM,
        mode: GenerationMode = GenerationMode.LEARNING,
    ) -> GeneratedDocument | None:
        """
        Generate a full unit.

        Returns:
            GeneratedDocument, or None if there is no outline or no step survived
        """
        audience_band = AudienceBand(audience_band)
        mode = GenerationMode(mode)

        skeleton = await self.outline_generator.generate_outline(
            topic,
            source_text=source_text,
            audience_band=audience_band,
            length_tier=length_tier,
            mode=mode,
        )
        if skeleton is None:
            logger.error(f"No outline for '{topic}', aborting generation")
            return None

        return await self.generate_from_skeleton(topic, skeleton, source_text, audience_band, mode)

    async def generate_from_skeleton(
        self,
        topic: str,
        skeleton: UnitSkeleton,
        source_text: str | None = None,
        audience_band: AudienceBand = AudienceBand.MIDDLE,
        mode: GenerationMode = GenerationMode.LEARNING,
    ) -> GeneratedDocument | None:
        total = len(skeleton.steps)
        logger.info(f"Generating {total} steps for '{skeleton.title}'")

        # gather() keeps argument order, so results line up with skeleton.steps
        items = await asyncio.gather(*(
            self.step_generator.generate_step_detail(
                topic,
                step,
                audience_band=audience_band,
                source_text=source_text,
                mode=mode,
                total_steps=total,
            )
            for step in skeleton.steps
        ), return_exceptions=True)

        steps: list[DocumentStep] = []
        skipped: list[int] = []
        for step, item in zip(skeleton.steps, items):
            if isinstance(item, Exception):
                logger.error(f"Step {step.index} ('{step.title}') raised: {item}")
                item = None
            document_step = assemble_step(step, item, self.normalizer, mode)
            if document_step is None:
                skipped.append(step.index)
            else:
                steps.append(document_step)

        if not steps:
            logger.error(f"All {total} steps failed for '{topic}'")
            return None

        if self.include_tutor_block:
            steps.append(
                DocumentStep(
                    step_number=total + 1,
                    title="Tutor",
                    blocks=(
                        tutor_block(
                            topic,
                            audience_band,
                            self.tutor_persona,
                            self.language,
                            id_factory=self.normalizer.id_factory,
                        ),
                    ),
                )
            )

        if skipped:
            logger.warning(f"Skipped steps {skipped} of '{skeleton.title}'")

        return GeneratedDocument(
            title=skeleton.title,
            topic=topic,
            steps=tuple(steps),
            audience_band=audience_band,
            mode=mode,
            metadata={"generator": "two-phase", "planned_steps": total},
            skipped_steps=tuple(skipped),
        )

    def generation_fn(
        self,
        topic: str,
        source_text: str | None = None,
        audience_band: AudienceBand = AudienceBand.MIDDLE,
        length_tier: LengthTier = LengthTier.MEDIUM,
        mode: GenerationMode = GenerationMode.LEARNING,
    ) -> GenerationFn:
        """Bind arguments into a zero-argument callable for SafeGenerationWorkflow."""

        async def _generate() -> GeneratedDocument | None:
            return await self.generate(topic, source_text, audience_band, length_tier, mode)

        return _generate
