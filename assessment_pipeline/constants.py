# assessment_pipeline/constants.py
"""
Project-wide small constants & enums.

Import examples:
    from .constants import DedupPolicy, Keys, PART_COUNT, QUESTIONS_PER_PART
"""

from typing import Final, Set, Tuple


# --------- Assessment shape ---------

PART_COUNT: Final[int] = 4
QUESTIONS_PER_PART: Final[int] = 100
TOTAL_QUESTIONS: Final[int] = PART_COUNT * QUESTIONS_PER_PART

ANSWER_LETTERS: Final[Tuple[str, ...]] = ("A", "B", "C", "D")
DIFFICULTIES: Final[Tuple[str, ...]] = ("Easy", "Moderate", "Challenging")
QUESTION_KINDS: Final[Tuple[str, ...]] = ("Concept", "Formula", "Numerical", "Application")


# --------- Policies / Modes ---------

class DedupPolicy:
    """What to do with generated questions that repeat earlier ones."""
    OFF: Final[str] = "off"      # prompt-only novelty, nothing enforced
    WARN: Final[str] = "warn"    # log duplicates, keep them
    DROP: Final[str] = "drop"    # remove duplicates before stamping

    ALL: Final[Set[str]] = {OFF, WARN, DROP}


# --------- JSON Keys (wire names, camelCase) ---------

class Keys:
    class Analysis:
        CHAPTERS: Final[str] = "chapters"
        PARTS: Final[str] = "parts"
        TOTAL_TOPICS: Final[str] = "totalTopics"
        SUMMARY: Final[str] = "summary"

    class Chapter:
        TITLE: Final[str] = "title"
        TOPICS: Final[str] = "topics"

    class Part:
        NAME: Final[str] = "name"
        CHAPTER_TITLES: Final[str] = "chapterTitles"

    class MCQ:
        ID: Final[str] = "id"
        PART_NAME: Final[str] = "partName"
        CHAPTER_TITLE: Final[str] = "chapterTitle"
        QUESTION: Final[str] = "question"
        OPTIONS: Final[str] = "options"
        CORRECT_ANSWER: Final[str] = "correctAnswer"
        TOPIC: Final[str] = "topic"
        DIFFICULTY: Final[str] = "difficulty"
        EXPLANATION: Final[str] = "explanation"


# --------- Export ---------

CSV_HEADERS: Final[Tuple[str, ...]] = (
    "Part", "Chapter", "Question",
    "Option A", "Option B", "Option C", "Option D",
    "Correct Answer",
)
