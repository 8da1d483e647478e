"""
Prompts for unit generation, validation and repair.

Every builder here is a pure function of its arguments: grade band, mode,
length tier and source text come in explicitly, nothing is read from globals
at call time. Rule tables (grade bands, Bloom distribution, fallback matrix)
are plain data so the validator can share them.

Prompt families:
- Outline (skeleton) prompt
- Step detail prompt
- Validation (pedagogical + structural audit) prompt
- Auto-fix prompt
- Legacy single-call unit prompt
- Single-activity prompts (categorization, ordering, fill-in-blanks, memory game, MCQ, open question)
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from unitforge.content.document import AudienceBand, GenerationMode

if TYPE_CHECKING:
    from unitforge.generation.outline import SkeletonStep


# =============================================================================
# Grade Bands
# =============================================================================


@dataclass(frozen=True)
class BandRules:
    """Linguistic rule set for one audience band."""

    label: str
    cefr: str
    max_sentence_words: int
    allow_passive: bool
    register: str
    rules: tuple[str, ...]


GRADE_BAND_RULES: dict[AudienceBand, BandRules] = {
    AudienceBand.ELEMENTARY: BandRules(
        label="Elementary school",
        cefr="A2-B1",
        max_sentence_words=12,
        allow_passive=False,
        register="personal",
        rules=(
            "Use simple Subject-Verb-Object sentences.",
            "Keep every sentence to 12 words or fewer.",
            "Do NOT use the passive voice.",
            "Prefer concrete nouns over abstract ones; avoid long noun chains.",
            "Use a warm, personal tone that speaks directly to the learner.",
        ),
    ),
    AudienceBand.MIDDLE: BandRules(
        label="Middle school",
        cefr="B1-B2",
        max_sentence_words=20,
        allow_passive=True,
        register="neutral",
        rules=(
            "Use compound sentences joined by explicit logical connectors "
            "(because, although, therefore, as a result).",
            "Keep sentences to 20 words or fewer.",
            "Make cause and effect explicit.",
            "A light, mildly humorous tone is allowed when it serves the content.",
        ),
    ),
    AudienceBand.HIGH: BandRules(
        label="High school",
        cefr="B2-C1",
        max_sentence_words=30,
        allow_passive=True,
        register="formal",
        rules=(
            "Use a formal academic register.",
            "Use nominalized constructions (e.g. 'the expansion of trade' rather than 'trade expanded').",
            "Embedded and subordinate clauses are expected.",
            "Use precise domain vocabulary and define it once.",
        ),
    ),
}

# Rewrite long sentences instead of removing ideas or lowering the level
COGNITIVE_SHIELD = (
    "COGNITIVE SHIELD: Never suggest removing an idea, dropping content, or lowering the "
    "Bloom level. If a sentence is too complex for the band, suggest splitting it into "
    "shorter sentences that keep every idea. Simple syntax, complex thought."
)


def band_rules(band: AudienceBand | str) -> BandRules:
    return GRADE_BAND_RULES[AudienceBand(band)]


def format_band_rules(band: AudienceBand | str) -> str:
    rules = band_rules(band)
    lines = [f"AUDIENCE: {rules.label} (CEFR {rules.cefr})"]
    lines.extend(f"- {rule}" for rule in rules.rules)
    return "\n".join(lines)


# =============================================================================
# Bloom Distribution & Structure Guides
# =============================================================================

# Cognitive level per step, keyed by step count
BLOOM_DISTRIBUTION: dict[int, tuple[str, ...]] = {
    3: ("Remember", "Analyze", "Create"),
    5: ("Remember", "Understand", "Apply", "Analyze", "Create"),
    7: ("Remember", "Understand", "Apply", "Analyze", "Analyze", "Evaluate", "Create"),
}

# Interaction types suited to each cognitive level, most preferred first
BLOOM_INTERACTIONS: dict[str, tuple[str, ...]] = {
    "Remember": ("memory_game", "multiple_choice", "true_false"),
    "Understand": ("multiple_choice", "fill_in_blanks"),
    "Apply": ("fill_in_blanks", "categorization", "ordering"),
    "Analyze": ("categorization", "ordering", "fill_in_blanks"),
    "Evaluate": ("open_question", "multiple_choice"),
    "Create": ("open_question", "audio_response"),
}

STRUCTURE_GUIDES: dict[int, str] = {
    3: (
        "Step 1 (Remember/Understand): memory_game or multiple_choice.\n"
        "Step 2 (Apply/Analyze): fill_in_blanks or categorization.\n"
        "Step 3 (Evaluate/Create): open_question or multiple_choice."
    ),
    5: (
        "Steps 1-2 (Remember/Understand): recall and recognition.\n"
        "Steps 3-4 (Apply/Analyze): categorization, ordering, fill_in_blanks.\n"
        "Step 5 (Create): open_question."
    ),
    7: (
        "Steps 1-2 (Foundation): memory_game, multiple_choice.\n"
        "Steps 3-5 (Connection): ordering, categorization, matching.\n"
        "Steps 6-7 (Synthesis): open_question, audio_response."
    ),
}


def bloom_levels(step_count: int) -> tuple[str, ...]:
    """Cognitive level per step; counts outside the table are spread over the 7-step plan."""
    if step_count in BLOOM_DISTRIBUTION:
        return BLOOM_DISTRIBUTION[step_count]
    base = BLOOM_DISTRIBUTION[7]
    return tuple(base[min(len(base) - 1, i * len(base) // max(step_count, 1))] for i in range(step_count))


# =============================================================================
# Safety Valve
# =============================================================================

# Requested type -> simpler types to fall back to, in order
FALLBACK_MATRIX: dict[str, tuple[str, ...]] = {
    "ordering": ("categorization", "fill_in_blanks"),
    "categorization": ("fill_in_blanks",),
    "memory_game": ("multiple_choice", "true_false"),
}
FINAL_FALLBACK = "multiple_choice"


def fallback_chain(interaction_type: str) -> tuple[str, ...]:
    chain = FALLBACK_MATRIX.get(interaction_type, ())
    if interaction_type != FINAL_FALLBACK and FINAL_FALLBACK not in chain:
        chain = chain + (FINAL_FALLBACK,)
    return chain


def format_safety_valve(interaction_type: str) -> str:
    chain = fallback_chain(interaction_type)
    if not chain:
        return "SAFETY VALVE: Never return broken JSON. Keep the structure valid."
    arrow = " -> ".join((interaction_type,) + chain)
    return (
        "SAFETY VALVE: If the source material cannot support a valid "
        f"'{interaction_type}' activity, fall back in this order: {arrow}. "
        "Set selected_interaction to the type you actually produced. "
        "A valid simpler activity always beats a broken complex one. Never return broken JSON."
    )


# =============================================================================
# Shared Output Contracts
# =============================================================================

INTERACTION_FIELDS: dict[str, str] = {
    "multiple_choice": '"question": "...", "options": ["...", "...", "...", "..."], "correct_answer": "<exact option text>"',
    "true_false": '"question": "<statement>", "options": ["True", "False"], "correct_answer": "True" | "False"',
    "open_question": '"question": "...", "model_answer": ["<bullet>", "<bullet>", "<bullet>"]',
    "ordering": '"instruction": "...", "correct_order": ["<first>", "<second>", "..."]',
    "categorization": '"question": "...", "categories": ["A", "B"], "items": [{"text": "...", "category": "A"}]',
    "fill_in_blanks": '"text": "A passage with [hidden] words in square brackets", "word_bank": ["hidden", "..."]',
    "memory_game": '"question": "...", "pairs": [{"card_a": "...", "card_b": "..."}]',
    "audio_response": '"question": "...", "description": "...", "max_duration": 60',
}


def _interaction_fields(interaction_type: str) -> str:
    return INTERACTION_FIELDS.get(interaction_type, INTERACTION_FIELDS[FINAL_FALLBACK])


def _source_block(source_text: str | None, limit: int) -> str:
    if not source_text:
        return ""
    return (
        "SOURCE MATERIAL (use ONLY facts found here):\n"
        '"""\n'
        f"{source_text[:limit]}\n"
        '"""\n'
    )


def _mode_rules(mode: GenerationMode) -> str:
    if mode is GenerationMode.EXAM:
        return (
            "MODE: EXAM. Questions only. No teaching text, no hints, no encouragement. "
            "Use an objective, neutral tone."
        )
    if mode is GenerationMode.GAME:
        return "MODE: GAME. Every step is 100% interaction; keep any text to one short framing line."
    return (
        "MODE: LEARNING. Each step teaches a short chunk, then checks it with an interaction. "
        "Never leave a wall of text without a checkpoint."
    )


# =============================================================================
# Outline Prompt
# =============================================================================


def build_outline_prompt(
    topic: str,
    step_count: int,
    audience_band: AudienceBand,
    mode: GenerationMode = GenerationMode.LEARNING,
    source_text: str | None = None,
    language: str = "English",
    source_limit: int = 15000,
) -> str:
    """
    Build the skeleton prompt.

    Args:
        topic: Unit topic
        step_count: Exact number of steps to produce
        audience_band: Grade band
        mode: Generation mode
        source_text: Optional source material to segment
        language: Output language
        source_limit: Characters of source text to include

    Returns:
        Prompt string asking for {"unit_title", "steps": [...]}
    """
    levels = bloom_levels(step_count)
    level_lines = "\n".join(
        f"- Step {i + 1}: {level} (suggested: {', '.join(BLOOM_INTERACTIONS[level][:2])})"
        for i, level in enumerate(levels)
    )
    guide = STRUCTURE_GUIDES.get(step_count, "")

    parts = [
        f"You are designing a {step_count}-step learning unit about \"{topic}\".",
        f"Write all titles and focus descriptions in {language}.",
        "",
        _source_block(source_text, source_limit),
        "PROCESS:",
        "1. HOLISTIC READ: Read the whole topic (and source, if given) before planning. "
        "Include every story, example and sub-topic; do not favour the first part of the text.",
        f"2. SEGMENTATION: Divide the material into EXACTLY {step_count} non-overlapping chunks. "
        "Chunk A must end before chunk B begins. No fact may appear in two steps.",
        f"3. ZERO TEXT WALL: If the material naturally has more than {step_count} chunks, "
        "merge neighbours; every chunk becomes one step that ends in an interaction "
        "(multiple_choice or true_false checkpoints are acceptable).",
        "4. TOPIC POLICING: Give each step a one-sentence narrative_focus and a forbidden_topics "
        "list naming what belongs to OTHER steps.",
        "5. LOGIC SAFETY: Categorization steps need mutually exclusive categories; ordering steps "
        "need an objective sequence (time, process), never an opinion.",
        "",
        _mode_rules(mode),
        "",
        "COGNITIVE PROGRESSION:",
        level_lines,
        guide,
        "",
        format_band_rules(audience_band),
        "",
        "Return ONLY JSON in this shape:",
        "{",
        '  "unit_title": "...",',
        '  "steps": [',
        "    {",
        '      "step_number": 1,',
        '      "title": "...",',
        '      "narrative_focus": "...",',
        '      "forbidden_topics": ["..."],',
        '      "bloom_level": "Remember",',
        '      "suggested_interaction_type": "multiple_choice"',
        "    }",
        "  ]",
        "}",
    ]
    return "\n".join(p for p in parts if p is not None)


# =============================================================================
# Step Detail Prompt
# =============================================================================


def build_step_prompt(
    topic: str,
    step: SkeletonStep,
    total_steps: int,
    audience_band: AudienceBand,
    mode: GenerationMode = GenerationMode.LEARNING,
    source_text: str | None = None,
    language: str = "English",
    source_limit: int = 3000,
) -> str:
    """Build the prompt for one step's teach text and interaction."""
    interaction = step.suggested_interaction_type or FINAL_FALLBACK
    forbidden = ", ".join(step.forbidden_topics) if step.forbidden_topics else "none"

    parts = [
        f"Unit topic: \"{topic}\". This is Chapter {step.index} of {total_steps}: \"{step.title}\".",
        f"Write in {language}.",
        "",
        _source_block(source_text, source_limit),
        "SCOPE:",
        f"- Focus ONLY on: {step.narrative_focus}",
        f"- FORBIDDEN topics (covered in other chapters): {forbidden}",
        "- Strict grounding: use only facts from the source material or the focus above.",
        "- Do not repeat definitions from earlier chapters.",
        "",
        f"COGNITIVE LEVEL: {step.cognitive_level}",
        f"INTERACTION TYPE: {interaction}",
        format_safety_valve(interaction),
        "",
        format_band_rules(audience_band),
        "",
        _mode_rules(mode),
    ]

    if mode is GenerationMode.EXAM:
        parts.append('Set "teach_content" to "" and "progressive_hints" to [].')
    else:
        parts.extend([
            "- teach_content: the chunk this step teaches. For ordering, write it as a narrative.",
            "- progressive_hints: two hints, level 1 (nudge) then level 2 (near answer).",
        ])

    parts.extend([
        "- For open_question, model_answer is 3-4 bullet points.",
        "- feedback_incorrect explains WHY a wrong choice is wrong and cites the source.",
        "",
        "Return ONLY JSON in this shape:",
        "{",
        f'  "step_number": {step.index},',
        f'  "bloom_level": "{step.cognitive_level}",',
        '  "teach_content": "...",',
        '  "teacher_tip": "...",',
        f'  "selected_interaction": "{interaction}",',
        '  "data": {',
        '    "progressive_hints": ["...", "..."],',
        '    "source_reference_hint": "...",',
        '    "feedback_correct": "...",',
        '    "feedback_incorrect": "...",',
        f"    {_interaction_fields(interaction)}",
        "  }",
        "}",
    ])
    return "\n".join(parts)


# =============================================================================
# Validation & Auto-Fix Prompts
# =============================================================================

STRUCTURAL_RULES = (
    "STRUCTURAL RULES:",
    "- Every text block is immediately followed by an interactive block (no wall of text).",
    "- Steps are distinct; no two steps teach or ask the same thing.",
    "- No step touches a topic listed in its forbidden_topics.",
    "- Data integrity: options >= 2, categories non-empty, pairs >= 2, correct answer present, "
    "feedback not empty.",
    "- feedback_incorrect must cite the source.",
)


def build_validation_prompt(document: dict[str, Any], audience_band: AudienceBand) -> str:
    """Audit prompt; the model answers with the ValidationResult JSON shape."""
    rules = band_rules(audience_band)
    parts = [
        "You are a strict pedagogical editor. Audit the learning unit below.",
        "",
        "LINGUISTIC RULES:",
        format_band_rules(audience_band),
        "",
        COGNITIVE_SHIELD,
        "",
        *STRUCTURAL_RULES,
        "",
        "Use issue_type 'LINGUISTIC_VIOLATION' for language problems and "
        "'STRUCTURAL_VIOLATION' for structure problems.",
        "location is '<step_number>.<block_index>' (1-based step, 0-based block) or 'document'.",
        "",
        "UNIT:",
        json.dumps(document, ensure_ascii=False),
        "",
        "Return ONLY JSON:",
        "{",
        '  "status": "PASS" | "REJECT",',
        '  "metrics": {',
        f'    "cefr_level": "<estimate; target {rules.cefr}>",',
        '    "readability_score": <0-100>,',
        '    "cognitive_load": "Low" | "Medium" | "High",',
        f'    "language_register": "<target {rules.register}>"',
        "  },",
        '  "issues": [{"location": "...", "issue_type": "...", "description": "...", "suggested_fix": "..."}]',
        "}",
    ]
    return "\n".join(parts)


def build_autofix_prompt(document: dict[str, Any], issues: list[dict[str, Any]]) -> str:
    """Repair prompt: fix only the listed issues, keep the structure."""
    parts = [
        "You are fixing a learning unit that failed review.",
        "",
        "ISSUES TO FIX:",
        json.dumps(issues, ensure_ascii=False, indent=2),
        "",
        "RULES:",
        "- Fix ONLY the specific issues listed. Leave everything else untouched.",
        "- Maintain the original JSON structure exactly: same steps, same blocks, same order, "
        "same block ids and types.",
        "- Do NOT change the topic or the core educational value.",
        f"- {COGNITIVE_SHIELD}",
        "",
        "UNIT:",
        json.dumps(document, ensure_ascii=False),
        "",
        "Return ONLY the corrected unit JSON.",
    ]
    return "\n".join(parts)


# =============================================================================
# Legacy Single-Call Unit Prompt
# =============================================================================


def build_monolithic_prompt(
    topic: str,
    audience_band: AudienceBand,
    item_count: int = 5,
    source_text: str | None = None,
    language: str = "English",
    source_limit: int = 15000,
) -> str:
    parts = [
        f"Create {item_count} interactive learning activities about \"{topic}\" in {language}.",
        "",
        _source_block(source_text, source_limit),
        format_band_rules(audience_band),
        "",
        "Mix activity types (multiple_choice, true_false, open_question, ordering, "
        "categorization, fill_in_blanks, memory_game). Progress from recall to creation.",
        "",
        "Return ONLY a JSON array. Each element:",
        '{"type": "<activity type>", "bloom_level": "...", "feedback_correct": "...", '
        '"feedback_incorrect": "...", ...type fields}',
        "",
        "Type fields:",
        *(f"- {name}: {fields}" for name, fields in INTERACTION_FIELDS.items()),
    ]
    return "\n".join(parts)


# =============================================================================
# Single-Activity Prompts
# =============================================================================

ACTIVITY_INSTRUCTIONS: dict[str, str] = {
    "categorization": (
        "Create one categorization activity with 2-4 mutually exclusive categories and "
        "6-10 items, each belonging to exactly one category."
    ),
    "ordering": (
        "Create one ordering activity of 4-6 steps with an objective sequence "
        "(chronological or procedural). List the steps in correct_order."
    ),
    "fill_in_blanks": (
        "Write one 40-60 word passage summarizing the key idea. Hide at least 3 key words by "
        "wrapping them in [square brackets]. Put the hidden words in word_bank."
    ),
    "memory_game": "Create one memory game with 6 concept/meaning pairs taken from the text.",
    "multiple_choice": (
        "Create one multiple choice question with 4 options. Distractors must be plausible "
        "misconceptions, not jokes."
    ),
    "open_question": (
        "Create one open question that requires reasoning, not recall. model_answer is 3-4 bullets."
    ),
}


def build_activity_prompt(
    activity_type: str,
    source_text: str,
    audience_band: AudienceBand,
    topic: str | None = None,
    language: str = "English",
    source_limit: int = 5000,
) -> str:
    instruction = ACTIVITY_INSTRUCTIONS.get(activity_type, ACTIVITY_INSTRUCTIONS[FINAL_FALLBACK])
    heading = f"Topic: \"{topic}\".\n" if topic else ""
    parts = [
        f"{heading}{instruction}",
        f"Write in {language}.",
        "",
        _source_block(source_text, source_limit),
        format_band_rules(audience_band),
        "",
        "Return ONLY a JSON object:",
        f'{{"type": "{activity_type}", "feedback_correct": "...", "feedback_incorrect": "...", '
        f"{_interaction_fields(activity_type)}}}",
    ]
    return "\n".join(parts)


# =============================================================================
# Tutor Chat
# =============================================================================

BOT_PERSONAS: dict[str, str] = {
    "teacher": "You are a patient, encouraging teacher. Explain clearly and check understanding.",
    "socratic": "You are a Socratic tutor. Never give the answer directly; guide with questions.",
    "concise": "You are a concise tutor. Answer in at most three short sentences.",
    "coach": "You are an energetic learning coach. Motivate the learner and celebrate progress.",
}


def build_tutor_system_prompt(
    topic: str,
    persona: str,
    audience_band: AudienceBand,
    language: str = "English",
) -> str:
    persona_text = BOT_PERSONAS.get(persona, BOT_PERSONAS["teacher"])
    return "\n".join([
        persona_text,
        f"You are helping a learner study \"{topic}\". Reply in {language}.",
        format_band_rules(audience_band),
        "Stay on the topic. If asked for answers to activities, give hints instead.",
    ])
