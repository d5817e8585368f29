"""
Pydantic schemas shared by every pipeline stage.

Wire names are camelCase (that is what the model is asked to return and what
the JSON export carries); Python code uses the snake_case field names.
All models are frozen: an analysis or a question never changes once built.
"""

import re
import math
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .constants import DIFFICULTIES, PART_COUNT


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, str_strip_whitespace=True)

    def to_wire(self) -> dict:
        """camelCase dict, optional fields left out when unset."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ─── Inputs ──────────────────────────────────────────────────────────────────

class UploadedFile(_Frozen):
    """One file picked by the user; raw content is base64 text, maybe a data URI."""
    name: str
    mime_type: str = Field(..., alias="mimeType")
    raw_content: str = Field(..., alias="rawContent", repr=False)


class ContentBlock(_Frozen):
    """Inline content for the generation capability: MIME type + bare base64 payload."""
    mime_type: str = Field(..., alias="mimeType")
    data: str = Field(..., repr=False)


# ─── Analysis ────────────────────────────────────────────────────────────────

class Chapter(_Frozen):
    title: str = Field(..., min_length=1)
    topics: Tuple[str, ...] = ()


class Part(_Frozen):
    name: str = Field(..., min_length=1)
    chapter_titles: Tuple[str, ...] = Field(..., alias="chapterTitles", min_length=1)


class TextbookAnalysis(_Frozen):
    """One-shot structural decomposition of the textbook."""
    chapters: Tuple[Chapter, ...] = Field(..., min_length=1)
    parts: Tuple[Part, ...]
    total_topics: int = Field(..., alias="totalTopics", ge=0)
    summary: str

    @field_validator("total_topics", mode="before")
    @classmethod
    def _round_total_topics(cls, v):
        # the model occasionally answers with a fractional count
        if isinstance(v, float) and math.isfinite(v):
            return round(v)
        return v

    @model_validator(mode="after")
    def _check_structure(self):
        if len(self.parts) != PART_COUNT:
            raise ValueError(f"expected exactly {PART_COUNT} parts, got {len(self.parts)}")

        titles = [c.title for c in self.chapters]
        dupes = sorted({t for t in titles if titles.count(t) > 1})
        if dupes:
            raise ValueError(f"chapter titles must be unique; repeated: {dupes}")

        known = set(titles)
        for part in self.parts:
            missing = [t for t in part.chapter_titles if t not in known]
            if missing:
                raise ValueError(f"part '{part.name}' references unknown chapters: {missing}")
        return self

    def chapters_for_part(self, part_index: int) -> List[Chapter]:
        """Chapters belonging to parts[part_index], in book order."""
        wanted = set(self.parts[part_index].chapter_titles)
        return [c for c in self.chapters if c.title in wanted]

    def uncovered_chapters(self) -> List[str]:
        covered = {t for p in self.parts for t in p.chapter_titles}
        return [c.title for c in self.chapters if c.title not in covered]


# ─── Questions ───────────────────────────────────────────────────────────────

_LABEL_RE = re.compile(r"^\(?\s*(?:option|answer)?\s*([A-Za-z])\s*[).:]?$", re.IGNORECASE)
_DIFFICULTY_BY_KEY: Dict[str, str] = {d.lower(): d for d in DIFFICULTIES}


def _standard_label(value) -> str:
    """
    Normalize an answer label to a single uppercase letter.
    Accepts 'a', 'B)', '(c)', 'Option D'. Anything else is returned as-is
    and fails the A-D check downstream.
    """
    s = "" if value is None else str(value).strip()
    m = _LABEL_RE.match(s)
    return m.group(1).upper() if m else s


class MCQOptions(_Frozen):
    A: str = Field(..., min_length=1)
    B: str = Field(..., min_length=1)
    C: str = Field(..., min_length=1)
    D: str = Field(..., min_length=1)


class GeneratedMCQ(_Frozen):
    """A question record as returned by the capability, before stamping."""
    chapter_title: str = Field(..., alias="chapterTitle", min_length=1)
    question: str = Field(..., min_length=1)
    options: MCQOptions
    correct_answer: Literal["A", "B", "C", "D"] = Field(..., alias="correctAnswer")
    topic: str
    difficulty: Literal["Easy", "Moderate", "Challenging"]
    explanation: Optional[str] = None

    @field_validator("correct_answer", mode="before")
    @classmethod
    def _normalize_answer(cls, v):
        return _standard_label(v)

    @field_validator("difficulty", mode="before")
    @classmethod
    def _normalize_difficulty(cls, v):
        if isinstance(v, str):
            return _DIFFICULTY_BY_KEY.get(v.strip().lower(), v)
        return v


class MCQ(GeneratedMCQ):
    """A stamped question: session-unique id plus the part it belongs to."""
    id: str = Field(..., min_length=1)
    part_name: str = Field(..., alias="partName", min_length=1)


