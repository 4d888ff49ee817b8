"""Job record data model and the flat store layout it is persisted in."""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


class JobKind(str, Enum):
    SUMMARIZE = "summarize"
    DETECT_LANGUAGE = "detect_language"
    TRANSLATE = "translate"


class JobPhase(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    DOWNLOADING_MODEL = "downloading_model"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TERMINAL_PHASES = frozenset({JobPhase.IDLE, JobPhase.SUCCEEDED, JobPhase.FAILED})


class SummaryType(str, Enum):
    TLDR = "tldr"
    TEASER = "teaser"
    KEY_POINTS = "key-points"
    HEADLINE = "headline"


class SummaryLength(str, Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


_BCP47_RE = re.compile(r"^[A-Za-z]{2,3}(-[A-Za-z0-9]{2,8})*$")


class SummarizeParams(BaseModel):
    type: SummaryType = SummaryType.TLDR
    length: SummaryLength = SummaryLength.SHORT


class TranslateParams(BaseModel):
    target_language: str
    source_language: Optional[str] = None

    @field_validator("target_language", "source_language")
    @classmethod
    def _check_language_tag(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not _BCP47_RE.match(value):
            raise ValueError(f"'{value}' is not a BCP-47 language tag")
        return value


class DetectLanguageParams(BaseModel):
    pass


PARAMS_BY_KIND = {
    JobKind.SUMMARIZE: SummarizeParams,
    JobKind.DETECT_LANGUAGE: DetectLanguageParams,
    JobKind.TRANSLATE: TranslateParams,
}


class JobRequest(BaseModel):
    """A request from an observer to run one job."""
    kind: JobKind
    input_text: str
    parameters: Dict[str, Any] = Field(default_factory=dict)

    def validated_params(self) -> BaseModel:
        """Parse ``parameters`` into the model for this kind. Raises ValidationError."""
        return PARAMS_BY_KIND[self.kind].model_validate(self.parameters)


class JobAck(BaseModel):
    """Synchronous answer to a job request, decoupled from completion."""
    accepted: bool
    reason: Optional[str] = None
    run_id: Optional[str] = None


def field_key(kind: JobKind, name: str) -> str:
    """Flat store key for one field of a kind's record, e.g. ``summarize.phase``."""
    return f"{kind.value}.{name}"


def _to_json(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def record_patch(kind: JobKind, **fields: Any) -> Dict[str, Any]:
    """Build a store patch for ``kind`` from JobRecord field values."""
    unknown = set(fields) - set(JobRecord.model_fields)
    if unknown:
        raise ValueError(f"Unknown JobRecord fields: {sorted(unknown)}")
    return {field_key(kind, name): _to_json(value) for name, value in fields.items()}


class JobRecord(BaseModel):
    """Latest run of one job kind. Overwritten in place, no history."""
    kind: JobKind
    phase: JobPhase = JobPhase.IDLE
    run_id: Optional[str] = None
    progress_percent: int = 0
    partial_result: str = ""
    final_result: Optional[str] = None
    error_message: Optional[str] = None
    error_kind: Optional[str] = None
    input_echo: Optional[Dict[str, Any]] = None
    started_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def in_flight(self) -> bool:
        return self.phase not in TERMINAL_PHASES

    @classmethod
    def from_state(cls, kind: JobKind, state: Dict[str, Any]) -> "JobRecord":
        """Rebuild the record for ``kind`` from a flat store snapshot."""
        prefix = f"{kind.value}."
        values = {
            key[len(prefix):]: value
            for key, value in state.items()
            if key.startswith(prefix) and value is not None
        }
        values.pop("kind", None)
        return cls(kind=kind, **values)
