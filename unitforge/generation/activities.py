"""Single-activity generation from source text."""
from __future__ import annotations

from enum import Enum

from loguru import logger

from config import get_settings
from unitforge.content.blocks import ContentBlock
from unitforge.content.document import AudienceBand
from unitforge.content.normalizer import BlockNormalizer
from unitforge.errors import UnitForgeError
from unitforge.generation.prompts import build_activity_prompt
from unitforge.llm.parsing import parse_json_object
from unitforge.llm.transport import CompletionOptions, LLMTransport


class ActivityKind(str, Enum):
    CATEGORIZATION = "categorization"
    ORDERING = "ordering"
    FILL_IN_BLANKS = "fill_in_blanks"
    MEMORY_GAME = "memory_game"
    MULTIPLE_CHOICE = "multiple_choice"
    OPEN_QUESTION = "open_question"


class ActivityGenerator:
    """Generates one normalized activity block from a passage."""

    def __init__(
        self,
        transport: LLMTransport,
        normalizer: BlockNormalizer | None = None,
        language: str | None = None,
    ):
        settings = get_settings()
        self.transport = transport
        self.normalizer = normalizer or BlockNormalizer()
        self.language = language or settings.output_language
        self.timeout_ms = settings.llm_timeout_ms

    async def generate(
        self,
        kind: ActivityKind | str,
        source_text: str,
        audience_band: AudienceBand = AudienceBand.MIDDLE,
        topic: str | None = None,
    ) -> ContentBlock | None:
        kind = ActivityKind(kind)
        prompt = build_activity_prompt(
            kind.value,
            source_text,
            AudienceBand(audience_band),
            topic=topic,
            language=self.language,
        )

        try:
            text = await self.transport.complete(
                prompt,
                CompletionOptions(json_mode=True, temperature=0.5, timeout_ms=self.timeout_ms),
            )
            item = parse_json_object(text)
        except UnitForgeError as e:
            logger.error(f"{kind.value} activity generation failed: {e}")
            return None
        except Exception as e:
            logger.error(f"Unexpected error generating {kind.value} activity: {e}")
            return None

        # The kind we asked for wins over whatever tag the model echoed
        item["type"] = kind.value
        item.pop("selected_interaction", None)
        return self.normalizer.normalize(item)
