"""Exception taxonomy for the assessment pipeline."""


class PipelineError(Exception):
    """Base class for every error raised by the pipeline."""


class CapabilityUnavailable(PipelineError):
    """The generation capability could not be initialised (e.g. no API key)."""


class AnalysisError(PipelineError):
    """Structural analysis failed: transport, unparsable response, or invariant violation."""


class GenerationError(PipelineError):
    """A part-generation call failed; none of its questions are accepted."""


class TransitionRejected(PipelineError):
    """A session operation was invoked in a state where it is not allowed."""

    def __init__(self, operation: str, status, reason: str):
        self.operation = operation
        self.status = status
        self.reason = reason
        super().__init__(f"{operation} rejected in state {getattr(status, 'value', status)}: {reason}")
