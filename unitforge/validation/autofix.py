"""
Auto-Fix Engine.

Asks the LLM to repair only the flagged issues and accepts the rewrite only if
the document keeps its shape: same block count, same types, same order, same
ids, and every block still valid. Anything else returns the original document.
"""
from __future__ import annotations

from loguru import logger

from config import get_settings
from unitforge.content.document import GeneratedDocument
from unitforge.errors import UnitForgeError
from unitforge.generation.prompts import build_autofix_prompt
from unitforge.llm.parsing import parse_json_object
from unitforge.llm.transport import CompletionOptions, LLMTransport
from unitforge.validation.result import ValidationResult


def same_shape(original: GeneratedDocument, candidate: GeneratedDocument) -> bool:
    """True when both documents have the same blocks by id and type, in order."""
    left, right = original.blocks, candidate.blocks
    if len(left) != len(right):
        return False
    return all(a.id == b.id and a.type == b.type for a, b in zip(left, right))


class AutoFixEngine:
    """Targeted LLM repair of a rejected document."""

    def __init__(self, transport: LLMTransport):
        settings = get_settings()
        self.transport = transport
        self.timeout_ms = settings.llm_timeout_ms
        self.max_output_tokens = settings.llm_max_output_tokens

    async def auto_fix(self, document: GeneratedDocument, validation: ValidationResult) -> GeneratedDocument:
        """
        Attempt a repair. Never raises; returns the original on any failure.
        """
        if not validation.issues:
            return document

        issues = [i.to_dict() for i in validation.issues]
        prompt = build_autofix_prompt(document.to_dict(), issues)

        try:
            text = await self.transport.complete(
                prompt,
                CompletionOptions(
                    json_mode=True,
                    temperature=0.3,
                    max_output_tokens=self.max_output_tokens,
                    timeout_ms=self.timeout_ms,
                ),
            )
            data = parse_json_object(text, required_key="steps")
            candidate = GeneratedDocument.from_dict(data)
        except (UnitForgeError, ValueError, KeyError, TypeError) as e:
            # pydantic.ValidationError is a ValueError: a block no longer fits its content model
            logger.error(f"Auto-fix failed, keeping original: {e}")
            return document
        except Exception as e:
            logger.error(f"Unexpected auto-fix error, keeping original: {e}")
            return document

        if not same_shape(document, candidate):
            logger.warning(
                f"Auto-fix changed document structure ({len(document.blocks)} -> "
                f"{len(candidate.blocks)} blocks or types/ids differ), keeping original"
            )
            return document

        attempts = int(document.metadata.get("autoFixAttempts", 0)) + 1
        logger.info(f"Auto-fix applied to {len(validation.locations())} location(s)")
        return document.with_blocks(candidate.blocks).with_metadata(autoFixAttempts=attempts)
