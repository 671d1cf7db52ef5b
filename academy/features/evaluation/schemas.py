from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field

from academy.features.progression.schemas import Progress


class OutcomeStatus(str, Enum):
    passed = "passed"
    failed = "failed"
    malformed = "malformed"
    interrupted = "interrupted"


class BatchStatus(str, Enum):
    complete = "complete"
    partial = "partial"
    empty = "empty"


class EvaluateRequest(BaseModel):
    # falls back to the stored draft when omitted
    code: Optional[str] = None


class EvaluationOutcome(BaseModel):
    mission_id: str
    status: OutcomeStatus
    awarded_score: int = 0
    feedback: str = ""
    suggestions: List[str] = Field(default_factory=list)
    visible_text: str = ""
    error: Optional[str] = None
    progress: Optional[Progress] = None

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.passed


class FeedbackEvent(BaseModel):
    type: Literal["feedback"] = "feedback"
    mission_id: str
    text: str


class ResultEvent(BaseModel):
    type: Literal["result"] = "result"
    outcome: EvaluationOutcome


class SelectEvent(BaseModel):
    type: Literal["select"] = "select"
    mission_id: str
    index: int
    total: int


class BatchReport(BaseModel):
    status: BatchStatus
    outcomes: List[EvaluationOutcome] = Field(default_factory=list)
    remaining: List[str] = Field(default_factory=list)
    message: str = ""


class BatchEvent(BaseModel):
    type: Literal["batch"] = "batch"
    report: BatchReport


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    detail: str


EvaluationEvent = Union[FeedbackEvent, ResultEvent]
SyncEvent = Union[SelectEvent, FeedbackEvent, ResultEvent, BatchEvent]
