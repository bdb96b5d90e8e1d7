"""Error taxonomy for unique code generation.

Every failure the engine can surface derives from CodeGenerationError so
callers can catch the whole family at their boundary.
"""


class CodeGenerationError(Exception):
    """Base class for code generation failures."""

    pass


class InfeasibleRequest(CodeGenerationError):
    """Raised when the requested quantity does not fit the code space safely."""

    pass


class InvalidAlphabet(CodeGenerationError):
    """Raised when an alphabet is empty or has more than 256 symbols."""

    pass


class RandomSourceExhausted(CodeGenerationError):
    """Raised when the secure random source cannot supply bytes."""

    pass


class NoProgressError(CodeGenerationError):
    """Raised when a whole generation round accepts no new codes."""

    pass


class WorkerFailure(CodeGenerationError):
    """Raised when a generation worker fails with an unexpected error."""

    pass
