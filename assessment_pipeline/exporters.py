"""CSV / JSON exports of the accumulated question sequence."""

import io
import os
import csv
import json
from typing import Dict, List, Optional, Sequence

from config import settings
from . import utils
from .constants import CSV_HEADERS, PART_COUNT, QUESTIONS_PER_PART
from .schemas import MCQ

logger = utils.setup_logger(__name__)


def select_part(mcqs: Sequence[MCQ], part_index: Optional[int]) -> List[MCQ]:
    """Questions at positions with floor(i / 100) == part_index (all when None)."""
    if part_index is None:
        return list(mcqs)
    return [m for i, m in enumerate(mcqs) if i // QUESTIONS_PER_PART == part_index]


def _row(m: MCQ) -> List[str]:
    o = m.options
    return [m.part_name, m.chapter_title, m.question, o.A, o.B, o.C, o.D, m.correct_answer]


def to_csv(mcqs: Sequence[MCQ], part_index: Optional[int] = None) -> str:
    """
    Header plus one row per question, in accumulated order.
    Fields containing quotes, commas or newlines are quoted with inner quotes doubled.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for m in select_part(mcqs, part_index):
        writer.writerow(_row(m))
    out = buf.getvalue()
    return out[:-1] if out.endswith("\n") else out


def from_csv(text: str) -> List[Dict[str, str]]:
    """Parse an export back into header-keyed rows."""
    return list(csv.DictReader(io.StringIO(text)))


def to_json(mcqs: Sequence[MCQ]) -> str:
    return json.dumps([m.to_wire() for m in mcqs], indent=2, ensure_ascii=False)


def export_filename(kind: str, part_index: Optional[int] = None) -> str:
    prefix = settings.EXPORT_FILE_PREFIX
    if kind == "json":
        return f"{prefix}_Assessment.json"
    if part_index is not None:
        return f"{prefix}_Part_{part_index + 1}.csv"
    return f"{prefix}_All_Parts.csv"


def write_exports(mcqs: Sequence[MCQ], out_dir: str) -> List[str]:
    """Write the all-parts CSV, one CSV per non-empty part, and the JSON export."""
    if not mcqs:
        logger.warning("Export: nothing to write.")
        return []

    written = []
    path = os.path.join(out_dir, export_filename("csv"))
    utils.save_text_file(to_csv(mcqs), path)
    written.append(path)

    for k in range(PART_COUNT):
        if select_part(mcqs, k):
            path = os.path.join(out_dir, export_filename("csv", k))
            utils.save_text_file(to_csv(mcqs, k), path)
            written.append(path)

    path = os.path.join(out_dir, export_filename("json"))
    utils.save_text_file(to_json(mcqs), path)
    written.append(path)
    return written
