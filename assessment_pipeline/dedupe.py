"""Question fingerprints for duplicate detection across a session."""

import re
import hashlib
import unicodedata
from typing import Iterable, List, Sequence, Set, Tuple

from .schemas import GeneratedMCQ

_NON_WORD_RE = re.compile(r"[^\w]+", re.UNICODE)


def normalize_question(text: str) -> str:
    """Casefold, NFKC, and collapse punctuation/whitespace so trivial rewordings collide."""
    t = unicodedata.normalize("NFKC", text or "").casefold()
    return _NON_WORD_RE.sub(" ", t).strip()


def fingerprint(text: str) -> str:
    return hashlib.sha256(normalize_question(text).encode("utf-8")).hexdigest()


def find_duplicates(
    candidates: Sequence[GeneratedMCQ],
    prior_questions: Iterable[str],
) -> Tuple[List[int], List[int]]:
    """
    Return (dupes_of_prior, dupes_within_batch) as candidate indexes.
    Within the batch, the first occurrence wins.
    """
    seen: Set[str] = {fingerprint(q) for q in prior_questions}
    batch_seen: Set[str] = set()
    of_prior: List[int] = []
    within: List[int] = []
    for i, mcq in enumerate(candidates):
        fp = fingerprint(mcq.question)
        if fp in seen:
            of_prior.append(i)
        elif fp in batch_seen:
            within.append(i)
        else:
            batch_seen.add(fp)
    return of_prior, within
