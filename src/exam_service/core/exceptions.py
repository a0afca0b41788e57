class ExamServiceError(Exception):
    pass


class UnknownCoreError(ExamServiceError):
    def __init__(self, core: str) -> None:
        self.core = core
        super().__init__(f"Unknown exam core: {core}")


class InvalidAllocation(ExamServiceError):
    """Bad weights or total passed to the allocator."""


class GenerationError(ExamServiceError):
    """Base class for failures that pause a generation run."""

    code = "GENERATION_FAILED"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class GenerationInvalid(GenerationError):
    """Backend output failed validation on the first try and the retry."""

    code = "GENERATION_INVALID"


class GenerationTransportFailure(GenerationError):
    """Network or backend error while requesting a batch."""

    code = "GENERATION_TRANSPORT_FAILURE"


class GenerationCancelled(GenerationError):
    """Caller-initiated pause. Carries no error message."""

    code = "GENERATION_CANCELLED"

    def __init__(self) -> None:
        super().__init__("")


class SessionIncomplete(ExamServiceError):
    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Generator returned {actual} questions; expected {expected}."
        )
