"""
Legacy single-call unit generator.

Asks for every activity in one response, then normalizes the array. The
document opens with a welcome text and a tutor chat block, followed by one
step per surviving activity. Uses the long timeout because the whole unit
comes back in a single call.
"""
from __future__ import annotations

from loguru import logger

from config import get_settings
from unitforge.content.blocks import BlockType, make_block
from unitforge.content.document import AudienceBand, DocumentStep, GeneratedDocument, GenerationMode
from unitforge.content.normalizer import BlockNormalizer
from unitforge.errors import UnitForgeError
from unitforge.generation.assembler import tutor_block
from unitforge.generation.prompts import build_monolithic_prompt
from unitforge.llm.parsing import parse_json_list
from unitforge.llm.transport import CompletionOptions, LLMTransport
from unitforge.workflow import GenerationFn


class MonolithicUnitGenerator:
    """Single-call generator kept for short units and quick previews."""

    def __init__(
        self,
        transport: LLMTransport,
        normalizer: BlockNormalizer | None = None,
        tutor_persona: str | None = None,
        language: str | None = None,
    ):
        settings = get_settings()
        self.transport = transport
        self.normalizer = normalizer or BlockNormalizer()
        self.tutor_persona = tutor_persona or settings.tutor_persona
        self.language = language or settings.output_language
        self.timeout_ms = settings.llm_long_timeout_ms
        self.temperature = settings.llm_temperature
        self.max_output_tokens = settings.llm_max_output_tokens
        self.source_limit = settings.outline_source_limit

    async def generate(
        self,
        topic: str,
        source_text: str | None = None,
        audience_band: AudienceBand = AudienceBand.MIDDLE,
        item_count: int = 5,
    ) -> GeneratedDocument | None:
        audience_band = AudienceBand(audience_band)
        prompt = build_monolithic_prompt(
            topic,
            audience_band,
            item_count=item_count,
            source_text=source_text,
            language=self.language,
            source_limit=self.source_limit,
        )

        try:
            text = await self.transport.complete(
                prompt,
                CompletionOptions(
                    json_mode=True,
                    temperature=self.temperature,
                    max_output_tokens=self.max_output_tokens,
                    timeout_ms=self.timeout_ms,
                ),
            )
            items = parse_json_list(text)
        except UnitForgeError as e:
            logger.error(f"Legacy generation failed for '{topic}': {e}")
            return None
        except Exception as e:
            logger.error(f"Unexpected error in legacy generation for '{topic}': {e}")
            return None

        blocks = self.normalizer.normalize_many([i for i in items if isinstance(i, dict)])
        if not blocks:
            logger.error(f"No usable activities in legacy response for '{topic}'")
            return None
        if len(blocks) < len(items):
            logger.warning(f"Dropped {len(items) - len(blocks)} of {len(items)} legacy activities")

        welcome = make_block(
            BlockType.TEXT,
            {"text": f"Welcome! In this unit we explore {topic}."},
            id_factory=self.normalizer.id_factory,
        )
        chat = tutor_block(
            topic,
            audience_band,
            self.tutor_persona,
            self.language,
            id_factory=self.normalizer.id_factory,
        )

        steps = [DocumentStep(step_number=1, title="Welcome", blocks=(welcome, chat))]
        for i, block in enumerate(blocks, start=2):
            steps.append(
                DocumentStep(
                    step_number=i,
                    title=f"Activity {i - 1}",
                    blocks=(block,),
                    bloom_level=block.metadata.bloom_level,
                )
            )

        return GeneratedDocument(
            title=topic,
            topic=topic,
            steps=tuple(steps),
            audience_band=audience_band,
            mode=GenerationMode.LEARNING,
            metadata={"generator": "monolithic"},
        )

    def generation_fn(
        self,
        topic: str,
        source_text: str | None = None,
        audience_band: AudienceBand = AudienceBand.MIDDLE,
        item_count: int = 5,
    ) -> GenerationFn:
        async def _generate() -> GeneratedDocument | None:
            return await self.generate(topic, source_text, audience_band, item_count)

        return _generate
