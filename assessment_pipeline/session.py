"""
Pipeline state machine.

    IDLE → ANALYZING → READY_TO_GENERATE → GENERATING → (READY_TO_GENERATE | COMPLETED)

A failed analysis returns to IDLE, a failed part returns to READY_TO_GENERATE;
nothing accumulated before the failed call is lost, and the same call can be
retried. Session data lives in one immutable ``SessionState`` value that is only
replaced by the named operations on ``PipelineSession``.
"""

import enum
import uuid
import threading
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from . import utils
from . import analysis_stage
from . import content_extraction
from . import part_generation
from .constants import PART_COUNT, QUESTIONS_PER_PART, TOTAL_QUESTIONS
from .errors import AnalysisError, GenerationError, PipelineError, TransitionRejected
from .gemini_client import ANALYSIS, GENERATION, make_capability
from .schemas import MCQ, Part, TextbookAnalysis, UploadedFile

logger = utils.setup_logger(__name__)


class SessionStatus(str, enum.Enum):
    IDLE = "IDLE"
    ANALYZING = "ANALYZING"
    READY_TO_GENERATE = "READY_TO_GENERATE"
    GENERATING = "GENERATING"
    COMPLETED = "COMPLETED"


BUSY = {SessionStatus.ANALYZING, SessionStatus.GENERATING}


@dataclass(frozen=True)
class SessionState:
    status: SessionStatus = SessionStatus.IDLE
    files: Tuple[UploadedFile, ...] = ()
    analysis: Optional[TextbookAnalysis] = None
    mcqs: Tuple[MCQ, ...] = ()
    current_part_index: int = 0
    error: Optional[str] = None
    part_counts: Tuple[int, ...] = field(default=())  # accepted questions per completed part

    @property
    def total_questions(self) -> int:
        return len(self.mcqs)

    @property
    def progress(self) -> float:
        return min(1.0, len(self.mcqs) / TOTAL_QUESTIONS)

    @property
    def next_part(self) -> Optional[Part]:
        if self.analysis is None or self.current_part_index >= PART_COUNT:
            return None
        return self.analysis.parts[self.current_part_index]

    def mcqs_for_part(self, part_index: int) -> List[MCQ]:
        """Questions produced by the given part's batch."""
        prefix = f"part-{part_index}-"
        return [m for m in self.mcqs if m.id.startswith(prefix)]


CapabilityFactory = Callable[[str], object]


class PipelineSession:
    """
    Drives one textbook through analysis and the four part batches.

    Status checks and flips happen under a lock; the capability call itself
    runs outside it, so a second call while one is in flight is rejected
    rather than queued.
    """

    def __init__(self, capability_factory: CapabilityFactory = make_capability, *, session_id: Optional[str] = None,
                 dedup_policy: Optional[str] = None):
        self.session_id = session_id or uuid.uuid4().hex
        self._capability_factory = capability_factory
        self._capabilities: Dict[str, object] = {}
        self._dedup_policy = dedup_policy
        self._lock = threading.Lock()
        self._state = SessionState()

    @property
    def state(self) -> SessionState:
        return self._state

    # ---- helpers ----

    def _capability(self, stage: str):
        if stage not in self._capabilities:
            self._capabilities[stage] = self._capability_factory(stage)
        return self._capabilities[stage]

    def _reject(self, operation: str, reason: str):
        logger.warning("Session %s: %s rejected (%s): %s", self.session_id[:8], operation, self._state.status.value, reason)
        raise TransitionRejected(operation, self._state.status, reason)

    def _finish(self, new_state: SessionState) -> SessionState:
        with self._lock:
            self._state = new_state
            return new_state

    # ---- file intake ----

    def add_files(self, files: Iterable[UploadedFile]) -> SessionState:
        files = tuple(files)
        with self._lock:
            if self._state.status != SessionStatus.IDLE:
                self._reject("add_files", "files can only be added before analysis")
            self._state = replace(self._state, files=self._state.files + files)
            logger.info("Session %s: %d file(s) added (%d total).", self.session_id[:8], len(files), len(self._state.files))
            return self._state

    def clear_files(self) -> SessionState:
        with self._lock:
            if self._state.status != SessionStatus.IDLE:
                self._reject("clear_files", "files can only be changed before analysis")
            self._state = replace(self._state, files=())
            return self._state

    # ---- transitions ----

    def start_analysis(self) -> SessionState:
        with self._lock:
            st = self._state
            if st.status != SessionStatus.IDLE:
                self._reject("start_analysis", "analysis already started or done")
            if not st.files:
                self._reject("start_analysis", "no files uploaded")
            files = st.files
            self._state = replace(st, status=SessionStatus.ANALYZING, error=None)
            before = st

        try:
            blocks = content_extraction.extract(files)
            analysis = analysis_stage.analyze(blocks, self._capability(ANALYSIS))
        except Exception as e:
            if not isinstance(e, PipelineError):
                logger.exception("Session %s: unexpected analysis failure", self.session_id[:8])
            message = str(e) if isinstance(e, AnalysisError) else f"Failed to analyze textbook: {e}"
            logger.error("Session %s: %s", self.session_id[:8], utils.truncate(message, 200))
            return self._finish(replace(before, status=SessionStatus.IDLE, error=message))

        return self._finish(replace(
            before,
            status=SessionStatus.READY_TO_GENERATE,
            analysis=analysis,
            current_part_index=0,
            error=None,
        ))

    def generate_next_part(self) -> SessionState:
        with self._lock:
            st = self._state
            if st.status != SessionStatus.READY_TO_GENERATE:
                self._reject("generate_next_part", "session is not ready to generate")
            if st.analysis is None or st.current_part_index >= PART_COUNT:
                self._reject("generate_next_part", "all parts already generated")
            self._state = replace(st, status=SessionStatus.GENERATING, error=None)
            before = st

        k = before.current_part_index
        try:
            batch = part_generation.generate_part(
                before.analysis, k, before.mcqs, self._capability(GENERATION),
                dedup_policy=self._dedup_policy,
            )
        except Exception as e:
            if not isinstance(e, PipelineError):
                logger.exception("Session %s: unexpected failure generating part %d", self.session_id[:8], k + 1)
            message = str(e) if isinstance(e, GenerationError) else f"Failed to generate Part {k + 1}: {e}"
            logger.error("Session %s: %s", self.session_id[:8], utils.truncate(message, 200))
            return self._finish(replace(before, status=SessionStatus.READY_TO_GENERATE, error=message))

        next_index = k + 1
        if len(batch) != QUESTIONS_PER_PART:
            logger.warning("Session %s: part %d accepted with %d questions.", self.session_id[:8], next_index, len(batch))
        return self._finish(replace(
            before,
            status=SessionStatus.COMPLETED if next_index >= PART_COUNT else SessionStatus.READY_TO_GENERATE,
            mcqs=before.mcqs + tuple(batch),
            part_counts=before.part_counts + (len(batch),),
            current_part_index=next_index,
            error=None,
        ))

    def reset(self) -> SessionState:
        """Discard everything and start again from an empty IDLE session. Not allowed while a call is in flight."""
        with self._lock:
            if self._state.status in BUSY:
                self._reject("reset", "a model call is still running")
            self._state = SessionState()
            logger.info("Session %s: reset.", self.session_id[:8])
            return self._state


class SessionRegistry:
    """In-memory sessions for the HTTP surface; nothing survives a restart."""

    def __init__(self, capability_factory: CapabilityFactory = make_capability):
        self._capability_factory = capability_factory
        self._sessions: Dict[str, PipelineSession] = {}
        self._lock = threading.Lock()

    def create(self) -> PipelineSession:
        session = PipelineSession(self._capability_factory)
        with self._lock:
            self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> Optional[PipelineSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def drop(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)
