"""Incremental reader for tutor feedback streams.

The tutor writes free prose for the student and closes with a JSON verdict
wrapped in ``[DATA]`` / ``[/DATA]``. Everything before the opening marker is
shown to the student as it arrives; the verdict is only parsed once the
stream has ended.
"""
from __future__ import annotations

import json
import re
from typing import List

from pydantic import BaseModel, Field, ValidationError

from academy.common.utils import extract_json
from academy.features.tutor.prompts import VERDICT_END, VERDICT_START

_VERDICT_RE = re.compile(re.escape(VERDICT_START) + r"(.*?)" + re.escape(VERDICT_END), re.DOTALL)


class Verdict(BaseModel):
    success: bool
    score: float = 0
    feedback: str = ""
    suggestions: List[str] = Field(default_factory=list)


class MalformedVerdictError(ValueError):
    """The stream ended without a parseable verdict block."""


class VerdictStreamParser:
    def __init__(self) -> None:
        self._chunks: List[str] = []

    @property
    def buffer(self) -> str:
        return "".join(self._chunks)

    def feed(self, chunk: str) -> str:
        """Append ``chunk`` and return the visible prose accumulated so far."""
        if chunk:
            self._chunks.append(chunk)
        return self.visible_text()

    def visible_text(self) -> str:
        return self.buffer.split(VERDICT_START)[0]

    def finish(self) -> Verdict:
        buffer = self.buffer
        match = _VERDICT_RE.search(buffer)
        if match is None:
            raise MalformedVerdictError("Tutor response did not include a verdict block")
        try:
            payload = extract_json(match.group(1).strip())
        except json.JSONDecodeError as exc:
            raise MalformedVerdictError(f"Verdict block is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise MalformedVerdictError("Verdict block is not a JSON object")
        if payload.get("suggestions") is None:
            payload.pop("suggestions", None)
        try:
            return Verdict.model_validate(payload)
        except ValidationError as exc:
            raise MalformedVerdictError(f"Verdict block has the wrong shape: {exc.errors()[0]['msg']}") from exc


__all__ = ["Verdict", "VerdictStreamParser", "MalformedVerdictError"]
