"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import asyncio
import itertools
import json
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from unitforge.errors import TransportError  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class ScriptedTransport:
    """
    LLMTransport fake.

    `script` is either a list of responses consumed in order, or a function
    prompt -> response. A response may be a str, a dict/list (sent as JSON),
    or an Exception instance (raised).
    """

    def __init__(self, script, delay=None):
        self.script = script if callable(script) else list(script)
        self.delay = delay  # optional function prompt -> seconds
        self.prompts = []
        self.options = []

    @property
    def call_count(self):
        return len(self.prompts)

    async def complete(self, prompt, options=None):
        self.prompts.append(prompt)
        self.options.append(options)

        if self.delay is not None:
            await asyncio.sleep(self.delay(prompt))

        if callable(self.script):
            response = self.script(prompt)
        elif self.script:
            response = self.script.pop(0)
        else:
            raise TransportError("no scripted response left")

        if isinstance(response, Exception):
            raise response
        if isinstance(response, (dict, list)):
            return json.dumps(response)
        return response


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def id_factory():
    """Deterministic block ids: block-1, block-2, ..."""
    counter = itertools.count(1)
    return lambda: f"block-{next(counter)}"


@pytest.fixture
def make_transport():
    """Build a ScriptedTransport."""
    return ScriptedTransport


@pytest.fixture
def sample_mcq_item():
    """Raw step-detail item as the model usually returns it."""
    return {
        "step_number": 1,
        "bloom_level": "Remember",
        "teach_content": "Plants make food from sunlight.",
        "teacher_tip": "Ask students what plants need.",
        "selected_interaction": "multiple_choice",
        "data": {
            "question": "What do plants use to make food?",
            "options": ["Sunlight", "Moonlight", "Rocks", "Sand"],
            "correct_answer": "Sunlight",
            "progressive_hints": ["Think about the sky.", "It is bright and warm."],
            "source_reference_hint": "Paragraph 1",
            "feedback_correct": "Yes! Sunlight is the energy source.",
            "feedback_incorrect": "Not quite. The text says plants use sunlight.",
        },
    }


@pytest.fixture
def sample_outline():
    """Outline JSON for a 3-step unit."""
    return {
        "unit_title": "How Plants Eat",
        "steps": [
            {
                "step_number": 1,
                "title": "Sunlight",
                "narrative_focus": "sunlight as energy",
                "forbidden_topics": [],
                "bloom_level": "Remember",
                "suggested_interaction_type": "multiple_choice",
            },
            {
                "step_number": 2,
                "title": "Water and roots",
                "narrative_focus": "roots absorb water",
                "forbidden_topics": [],
                "bloom_level": "Analyze",
                "suggested_interaction_type": "categorization",
            },
            {
                "step_number": 3,
                "title": "Making sugar",
                "narrative_focus": "glucose production",
                "forbidden_topics": [],
                "bloom_level": "Create",
                "suggested_interaction_type": "open_question",
            },
        ],
    }


@pytest.fixture
def sample_document():
    """Two-step learning unit with no local rule violations."""
    from unitforge.content.blocks import BlockType, make_block
    from unitforge.content.document import AudienceBand, DocumentStep, GeneratedDocument

    text = make_block(BlockType.TEXT, {"text": "Plants need sunlight to make food."}, id_factory=lambda: "t1")
    question = make_block(
        BlockType.MULTIPLE_CHOICE,
        {"question": "What do plants need to make food?", "options": ["Sunlight", "Rocks"], "correct_answer": "Sunlight"},
        {"feedback_incorrect": "The text says plants need sunlight.", "score": 10},
        id_factory=lambda: "q1",
    )
    ordering = make_block(
        BlockType.ORDERING,
        {"instruction": "Put the stages in order.", "correct_order": ["Seed", "Sprout", "Flower"]},
        {"feedback_incorrect": "Check the second paragraph.", "score": 15},
        id_factory=lambda: "q2",
    )
    return GeneratedDocument(
        title="How Plants Eat",
        topic="Photosynthesis",
        audience_band=AudienceBand.MIDDLE,
        steps=(
            DocumentStep(step_number=1, title="Sunlight", blocks=(text, question)),
            DocumentStep(step_number=2, title="Growth", blocks=(ordering,)),
        ),
    )
