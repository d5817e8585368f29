import json
import sys
from pathlib import Path
from typing import Any, List, Optional, Sequence

import pytest

# Add the project root to sys.path so config / assessment_pipeline import without install
ROOT_PATH = Path(__file__).resolve().parent.parent
if ROOT_PATH.as_posix() not in sys.path:
    sys.path.insert(0, ROOT_PATH.as_posix())

from config import settings  # noqa: E402
from assessment_pipeline.schemas import TextbookAnalysis, UploadedFile  # noqa: E402


class FakeCapability:
    """Scripted stand-in for Gemini: pops one response (text or exception) per call."""

    def __init__(self, responses: Optional[Sequence[Any]] = None):
        self.responses: List[Any] = list(responses or [])
        self.calls: List[dict] = []

    def queue(self, *responses: Any) -> "FakeCapability":
        self.responses.extend(responses)
        return self

    def generate(self, contents, response_schema):
        self.calls.append({"contents": list(contents), "schema": response_schema})
        if not self.responses:
            raise RuntimeError("FakeCapability: no scripted response left")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return item(contents, response_schema)
        return item if isinstance(item, str) else json.dumps(item)


def make_analysis_payload(chapters: int = 12, parts: int = 4) -> dict:
    """Analysis dict with `chapters` chapters split evenly over `parts` parts."""
    titles = [f"Chapter {i + 1}: Topic Block {i + 1}" for i in range(chapters)]
    per_part = max(1, chapters // max(1, parts))
    part_list = []
    for p in range(parts):
        chunk = titles[p * per_part:(p + 1) * per_part] if p < parts - 1 else titles[p * per_part:]
        part_list.append({"name": f"Part {p + 1}", "chapterTitles": chunk or titles[:1]})
    return {
        "chapters": [{"title": t, "topics": [f"{t} / topic a", f"{t} / topic b"]} for t in titles],
        "parts": part_list,
        "totalTopics": chapters * 2,
        "summary": "A complete mathematics course.",
    }


def make_mcq_records(chapter_titles: Sequence[str], n: int = 100, tag: str = "p") -> List[dict]:
    """`n` valid capability records spread round-robin over the given chapters."""
    records = []
    for i in range(n):
        records.append({
            "chapterTitle": chapter_titles[i % len(chapter_titles)],
            "question": f"[{tag}] What is {i} + {i}?",
            "options": {"A": str(2 * i), "B": str(2 * i + 1), "C": str(2 * i + 2), "D": str(2 * i + 3)},
            "correctAnswer": "A",
            "topic": f"Addition {tag}-{i % 7}",
            "difficulty": ("Easy", "Moderate", "Challenging")[i % 3],
            "explanation": f"{i} + {i} = {2 * i}",
        })
    return records


@pytest.fixture(autouse=True)
def _stable_settings(monkeypatch):
    """Keep tests independent of a developer's .env."""
    monkeypatch.setattr(settings, "DEDUP_POLICY", "off")
    monkeypatch.setattr(settings, "PRIOR_TOPICS_IN_PROMPT", 40)
    monkeypatch.setattr(settings, "IMAGE_MAX_WIDTH", 2200)
    monkeypatch.setattr(settings, "EXPORT_FILE_PREFIX", "MathGenius")


@pytest.fixture
def fake_capability():
    return FakeCapability()


@pytest.fixture
def analysis_payload() -> dict:
    return make_analysis_payload()


@pytest.fixture
def analysis(analysis_payload) -> TextbookAnalysis:
    return TextbookAnalysis.model_validate(analysis_payload)


@pytest.fixture
def pdf_upload() -> UploadedFile:
    # "%PDF-1.4" base64-encoded, delivered as a FileReader-style data URI
    return UploadedFile(name="book.pdf", mime_type="application/pdf", raw_content="data:application/pdf;base64,JVBERi0xLjQ=")


@pytest.fixture
def part_records(analysis):
    """Factory: valid 100-record batch (as JSON text) for a part index."""
    def _make(part_index: int, n: int = 100, tag: Optional[str] = None) -> str:
        titles = list(analysis.parts[part_index].chapter_titles)
        return json.dumps(make_mcq_records(titles, n=n, tag=tag or f"p{part_index}"))
    return _make
