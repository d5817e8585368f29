# prompts_presets.py
import json
from textwrap import dedent
from typing import Sequence

from .constants import ANSWER_LETTERS, DIFFICULTIES, PART_COUNT, QUESTIONS_PER_PART, QUESTION_KINDS, Keys
from .schemas import Chapter, Part


# ─── Response schemas (Gemini OpenAPI subset; field names as the SDK expects) ──

_A, _C, _P, _Q = Keys.Analysis, Keys.Chapter, Keys.Part, Keys.MCQ

ANALYSIS_RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        _A.CHAPTERS: {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    _C.TITLE: {"type": "STRING"},
                    _C.TOPICS: {"type": "ARRAY", "items": {"type": "STRING"}},
                },
                "required": [_C.TITLE, _C.TOPICS],
            },
        },
        _A.PARTS: {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    _P.NAME: {"type": "STRING"},
                    _P.CHAPTER_TITLES: {"type": "ARRAY", "items": {"type": "STRING"}},
                },
                "required": [_P.NAME, _P.CHAPTER_TITLES],
            },
            "min_items": PART_COUNT,
            "max_items": PART_COUNT,
        },
        _A.TOTAL_TOPICS: {"type": "INTEGER"},
        _A.SUMMARY: {"type": "STRING"},
    },
    "required": [_A.CHAPTERS, _A.PARTS, _A.TOTAL_TOPICS, _A.SUMMARY],
}

MCQ_RESPONSE_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            _Q.CHAPTER_TITLE: {
                "type": "STRING",
                "description": "Must match one of the chapter titles of this part exactly",
            },
            _Q.QUESTION: {"type": "STRING"},
            _Q.OPTIONS: {
                "type": "OBJECT",
                "properties": {letter: {"type": "STRING"} for letter in ANSWER_LETTERS},
                "required": list(ANSWER_LETTERS),
            },
            _Q.CORRECT_ANSWER: {"type": "STRING", "enum": list(ANSWER_LETTERS)},
            _Q.TOPIC: {"type": "STRING"},
            _Q.DIFFICULTY: {"type": "STRING", "enum": list(DIFFICULTIES)},
            _Q.EXPLANATION: {"type": "STRING"},
        },
        "required": [_Q.CHAPTER_TITLE, _Q.QUESTION, _Q.OPTIONS, _Q.CORRECT_ANSWER, _Q.TOPIC, _Q.DIFFICULTY],
    },
}


# ─── Prompts ─────────────────────────────────────────────────────────────────

def build_analysis_prompt(*, subject: str = "mathematics") -> str:
    """Prompt for the one-shot structural analysis of the whole book."""
    return dedent(f"""
    Analyze this {subject} textbook thoroughly.

    1. Extract all chapters, with their topics and subtopics, in book order.
    2. Divide the book into exactly {PART_COUNT} logical PARTS based on topic similarity,
       concept flow, and weightage. Every chapter must belong to a part.
    3. Ensure each part covers multiple chapters.

    Use each chapter title exactly once in "chapters", and refer to chapters inside
    "parts" by that exact title. "totalTopics" is the number of distinct topics found.

    Respond strictly in JSON format matching the schema.
    """).strip()


def build_part_prompt(
    *,
    part: Part,
    part_index: int,
    chapters: Sequence[Chapter],
    prior_topics: Sequence[str] = (),
    count: int = QUESTIONS_PER_PART,
    subject: str = "Mathematics",
) -> str:
    """Prompt for one 100-question batch, scoped to the chapters of a single part."""
    chapter_json = json.dumps([c.to_wire() for c in chapters], ensure_ascii=False)
    kinds = ", ".join(QUESTION_KINDS[:-1]) + f", and {QUESTION_KINDS[-1]}"
    levels = ", ".join(DIFFICULTIES)

    prior_block = ""
    if prior_topics:
        # same 4-space indent as the template below so dedent still applies
        prior_block = (
            "\n    ALREADY COVERED IN EARLIER PARTS (do not repeat these ideas; new angles only):\n    "
            + "; ".join(prior_topics)
            + "\n"
        )

    return dedent(f"""
    Act as an expert {subject} examiner.
    Generate exactly {count} high-quality MCQs for {part.name} (part {part_index + 1} of {PART_COUNT}).

    CHAPTERS IN THIS PART:
    {chapter_json}
    {prior_block}
    RULES:
    1. 100% mathematically correct.
    2. Exactly one correct option among A, B, C and D; the other three must be plausible but wrong.
    3. Distribution: spread the {count} questions fairly across all {len(chapters)} chapters in this part.
       No single chapter should dominate.
    4. Mix of {kinds} questions.
    5. Difficulty: balanced {levels}.
    6. Unique: avoid repeating ideas from previous questions, within this batch and from earlier parts.

    Set "chapterTitle" to one of the chapter titles above, copied exactly.
    Respond strictly in JSON format matching the schema.
    """).strip()
