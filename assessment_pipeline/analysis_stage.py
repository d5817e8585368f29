from typing import Any, Dict, Sequence

from . import utils
from . import response_validator as rv
from .constants import Keys
from .errors import AnalysisError
from .prompts_presets import ANALYSIS_RESPONSE_SCHEMA, build_analysis_prompt
from .schemas import ContentBlock, TextbookAnalysis

logger = utils.setup_logger(__name__)


def _canonicalize_part_refs(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Rewrite part chapter references to the exact chapter titles.
    Models sometimes echo a title with different case or spacing; those are
    matched case/whitespace-insensitively. Unknown references are left as-is
    so schema validation reports them.
    """
    chapters = payload.get(Keys.Analysis.CHAPTERS)
    parts = payload.get(Keys.Analysis.PARTS)
    if not isinstance(chapters, list) or not isinstance(parts, list):
        return payload

    titles = [
        ch[Keys.Chapter.TITLE].strip() for ch in chapters
        if isinstance(ch, dict) and isinstance(ch.get(Keys.Chapter.TITLE), str)
    ]
    exact = set(titles)
    by_key = {}
    for title in titles:
        by_key.setdefault(utils.normalize_title(title), title)

    fixed_parts = []
    for part in parts:
        if not isinstance(part, dict) or not isinstance(part.get(Keys.Part.CHAPTER_TITLES), list):
            fixed_parts.append(part)
            continue
        refs = []
        for ref in part[Keys.Part.CHAPTER_TITLES]:
            if isinstance(ref, str) and ref.strip() not in exact:
                canonical = by_key.get(utils.normalize_title(ref))
                if canonical:
                    logger.debug("Analysis: resolved chapter ref '%s' -> '%s'", ref, canonical)
                    ref = canonical
            refs.append(ref)
        fixed_parts.append({**part, Keys.Part.CHAPTER_TITLES: refs})
    return {**payload, Keys.Analysis.PARTS: fixed_parts}


def _log_soft_issues(analysis: TextbookAnalysis) -> None:
    uncovered = analysis.uncovered_chapters()
    if uncovered:
        logger.warning(
            "Analysis: %d chapter(s) not assigned to any part: %s",
            len(uncovered), utils.truncate(", ".join(uncovered), 200),
        )
    for i, part in enumerate(analysis.parts):
        if len(part.chapter_titles) < 2:
            logger.warning("Analysis: part %d '%s' spans a single chapter.", i + 1, part.name)


def analyze(blocks: Sequence[ContentBlock], capability) -> TextbookAnalysis:
    """
    Run the one-shot structural analysis.

    Sends every content block plus one instruction in a single request with the
    analysis response schema. Transport failure, unparsable JSON, or a result
    that breaks the TextbookAnalysis invariants raises AnalysisError.
    """
    if not blocks:
        raise AnalysisError("No textbook content to analyse.")

    logger.info("Analysis: sending %d content block(s) for structural analysis…", len(blocks))
    contents = [*blocks, build_analysis_prompt()]

    result = rv.call_capability(capability, contents, ANALYSIS_RESPONSE_SCHEMA, "Analysis")
    if isinstance(result, rv.Ok):
        result = rv.parse_json(result.value)
    if isinstance(result, rv.Ok):
        payload = result.value
        if isinstance(payload, dict):
            payload = _canonicalize_part_refs(payload)
        result = rv.validate_object(payload, TextbookAnalysis)

    if isinstance(result, rv.TransportError):
        raise AnalysisError(f"Failed to analyze textbook: {result.reason}")
    if isinstance(result, rv.SchemaError):
        logger.warning("Analysis: rejected response — %s", utils.truncate(result.reason, 200))
        raise AnalysisError(f"Textbook analysis was malformed: {result.reason}")

    analysis: TextbookAnalysis = result.value
    _log_soft_issues(analysis)
    logger.info(
        "Analysis: %d chapters, %d topics, parts: %s",
        len(analysis.chapters), analysis.total_topics,
        " | ".join(f"{p.name} ({len(p.chapter_titles)})" for p in analysis.parts),
    )
    return analysis
