"""Error taxonomy shared by providers, the orchestrator and callers."""

from enum import Enum


class ProviderErrorKind(str, Enum):
    CAPABILITY_UNAVAILABLE = "capability_unavailable"
    CREATE_FAILED = "create_failed"
    INVOKE_FAILED = "invoke_failed"
    EMPTY_RESULT = "empty_result"


class ProviderError(Exception):
    """A provider stage failed. Converted to a failed JobRecord by the orchestrator."""

    def __init__(self, kind: ProviderErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return self.message


class RunSuperseded(Exception):
    """Another run of the same kind took over the record.

    Never wrapped into a ``ProviderError``: a superseded run just stops.
    """


class InsufficientInputError(ValueError):
    """Input text is missing or too short. Raised before a job is submitted."""

    def __init__(self, length: int, min_chars: int):
        super().__init__(
            f"Not enough content to summarize ({length} characters, need at least {min_chars})."
        )
        self.length = length
        self.min_chars = min_chars
