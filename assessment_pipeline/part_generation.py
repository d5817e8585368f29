from typing import List, Optional, Sequence

from config import settings
from . import utils
from . import dedupe
from . import response_validator as rv
from .constants import PART_COUNT, QUESTIONS_PER_PART, DedupPolicy
from .errors import GenerationError
from .prompts_presets import MCQ_RESPONSE_SCHEMA, build_part_prompt
from .schemas import MCQ, Chapter, GeneratedMCQ, TextbookAnalysis

logger = utils.setup_logger(__name__)


def make_mcq_id(part_index: int, position: int) -> str:
    return f"part-{part_index}-q-{position}"


def _prior_topics(prior_mcqs: Sequence[MCQ], limit: int) -> List[str]:
    """Distinct topics of earlier questions, most recent last, capped at `limit`."""
    if limit <= 0:
        return []
    seen = {}
    for m in prior_mcqs:
        topic = (m.topic or "").strip()
        if topic:
            seen.pop(topic.casefold(), None)
            seen[topic.casefold()] = topic
    return list(seen.values())[-limit:]


def _resolve_chapters(records: List[GeneratedMCQ], chapters: Sequence[Chapter], part_name: str) -> List[GeneratedMCQ]:
    """Pin every record to an exact chapter title of this part, or fail the batch."""
    exact = {c.title for c in chapters}
    by_key = {utils.normalize_title(c.title): c.title for c in chapters}

    resolved: List[GeneratedMCQ] = []
    unknown: List[str] = []
    for rec in records:
        if rec.chapter_title in exact:
            resolved.append(rec)
            continue
        canonical = by_key.get(utils.normalize_title(rec.chapter_title))
        if canonical is None:
            unknown.append(rec.chapter_title)
            continue
        resolved.append(rec.model_copy(update={"chapter_title": canonical}))

    if unknown:
        distinct = sorted(set(unknown))
        raise GenerationError(
            f"{len(unknown)} question(s) reference chapters outside '{part_name}': "
            f"{utils.truncate(', '.join(distinct), 200)}"
        )
    return resolved


def _apply_dedup(records: List[GeneratedMCQ], prior_mcqs: Sequence[MCQ], policy: str) -> List[GeneratedMCQ]:
    policy = (policy or DedupPolicy.OFF).lower().strip()
    if policy not in DedupPolicy.ALL:
        logger.warning("Generation: unknown DEDUP_POLICY '%s'; treating as off.", policy)
        return records
    if policy == DedupPolicy.OFF:
        return records

    of_prior, within = dedupe.find_duplicates(records, (m.question for m in prior_mcqs))
    if not of_prior and not within:
        return records

    logger.warning(
        "Generation: %d duplicate(s) of earlier questions, %d repeated within the batch (policy=%s).",
        len(of_prior), len(within), policy,
    )
    if policy == DedupPolicy.WARN:
        return records
    drop = set(of_prior) | set(within)
    return [r for i, r in enumerate(records) if i not in drop]


def _count_by_chapter(mcqs: Sequence[MCQ]) -> str:
    counts = {}
    for m in mcqs:
        counts[m.chapter_title] = counts.get(m.chapter_title, 0) + 1
    return ", ".join(f"{k}={v}" for k, v in counts.items())


def generate_part(
    analysis: TextbookAnalysis,
    part_index: int,
    prior_mcqs: Sequence[MCQ],
    capability,
    *,
    dedup_policy: Optional[str] = None,
    count: int = QUESTIONS_PER_PART,
) -> List[MCQ]:
    """
    Generate one batch of questions for analysis.parts[part_index].

    All-or-nothing: transport failure, malformed JSON, any record breaking the
    schema, or a chapter outside this part raises GenerationError and nothing
    is returned. Batches over `count` are truncated; short non-empty batches are returned
    as they are. Each record is stamped with a session-unique id and the part name.
    """
    if not 0 <= part_index < PART_COUNT or part_index >= len(analysis.parts):
        raise GenerationError(f"Part index {part_index} is out of range (0..{PART_COUNT - 1}).")

    part = analysis.parts[part_index]
    chapters = analysis.chapters_for_part(part_index)
    prompt = build_part_prompt(
        part=part,
        part_index=part_index,
        chapters=chapters,
        prior_topics=_prior_topics(prior_mcqs, settings.PRIOR_TOPICS_IN_PROMPT),
        count=count,
    )
    logger.info("Generation: part %d '%s' (%d chapters, %d prior questions)…",
                part_index + 1, part.name, len(chapters), len(prior_mcqs))

    result = rv.call_capability(capability, [prompt], MCQ_RESPONSE_SCHEMA, "Generation")
    result = rv.parse_and_validate(result, GeneratedMCQ, many=True)

    if isinstance(result, rv.TransportError):
        raise GenerationError(f"Failed to generate Part {part_index + 1}: {result.reason}")
    if isinstance(result, rv.SchemaError):
        logger.warning("Generation: rejected batch for part %d — %s", part_index + 1, utils.truncate(result.reason, 200))
        raise GenerationError(f"Part {part_index + 1} response was malformed: {result.reason}")

    records: List[GeneratedMCQ] = _resolve_chapters(result.value, chapters, part.name)

    if len(records) > count:
        logger.warning("Generation: part %d returned %d questions; keeping the first %d.",
                       part_index + 1, len(records), count)
        records = records[:count]

    policy = settings.DEDUP_POLICY if dedup_policy is None else dedup_policy
    records = _apply_dedup(records, prior_mcqs, policy)

    if not records:
        logger.error("Generation: part %d produced no usable questions.", part_index + 1)
        raise GenerationError(f"Part {part_index + 1} returned no questions.")
    if len(records) < count:
        logger.warning("Generation: part %d short batch — %d of %d questions.", part_index + 1, len(records), count)

    mcqs = [
        MCQ(**rec.model_dump(), id=make_mcq_id(part_index, pos), part_name=part.name)
        for pos, rec in enumerate(records)
    ]
    logger.info("Generation: part %d accepted %d questions (%s).", part_index + 1, len(mcqs), _count_by_chapter(mcqs))
    return mcqs
