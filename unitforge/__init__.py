"""
unitforge: LLM-driven generation of validated learning units.

Pipeline:
1. Outline (skeleton) generation - exact-N step plan
2. Concurrent step detail generation
3. Block normalization - schema-free JSON to typed content blocks
4. Safe generation workflow - validate, auto-fix, accept or fail

Usage:
    from unitforge import SafeGenerationWorkflow, UnitGenerator, create_transport

    transport = create_transport()
    generator = UnitGenerator(transport)
    workflow = SafeGenerationWorkflow(ContentValidator(transport), AutoFixEngine(transport))
    document = await workflow.run(generator.generation_fn("Volcanoes"))
"""
from unitforge.content.blocks import BlockType, ContentBlock
from unitforge.content.document import AudienceBand, GeneratedDocument, GenerationMode, LengthTier
from unitforge.content.normalizer import BlockNormalizer, normalize
from unitforge.errors import (
    MalformedResponseError,
    TransportError,
    UnitForgeError,
    WorkflowExhaustedError,
)
from unitforge.generation.assembler import UnitGenerator
from unitforge.llm.transport import create_transport
from unitforge.validation.autofix import AutoFixEngine
from unitforge.validation.validator import ContentValidator
from unitforge.workflow import SafeGenerationWorkflow

__version__ = "0.1.0"

__all__ = [
    "AudienceBand",
    "AutoFixEngine",
    "BlockNormalizer",
    "BlockType",
    "ContentBlock",
    "ContentValidator",
    "GeneratedDocument",
    "GenerationMode",
    "LengthTier",
    "MalformedResponseError",
    "SafeGenerationWorkflow",
    "TransportError",
    "UnitForgeError",
    "UnitGenerator",
    "WorkflowExhaustedError",
    "create_transport",
    "normalize",
]
