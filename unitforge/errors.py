"""
Error taxonomy for the generation pipeline.

Only WorkflowExhaustedError is meant to reach a top-level caller. Transport and
malformed-response errors are absorbed at the generator boundary, where they
turn into a None result.
"""
from __future__ import annotations

from typing import Any


class UnitForgeError(Exception):
    """Base class for all pipeline errors."""


class TransportError(UnitForgeError):
    """The LLM service could not be reached, timed out, or answered with an error."""

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


class MalformedResponseError(UnitForgeError):
    """The LLM answered, but the text is not the JSON shape we asked for."""

    def __init__(self, message: str, raw: str | None = None):
        super().__init__(message)
        self.raw = raw


class WorkflowExhaustedError(UnitForgeError):
    """Validation still rejects the document after every auto-fix attempt."""

    def __init__(
        self,
        attempts: int,
        issues: list[dict[str, Any]] | None = None,
        history: list[Any] | None = None,
    ):
        super().__init__(
            f"Pedagogical validation failed after {attempts} auto-fix attempt(s)"
        )
        self.attempts = attempts
        self.issues = issues or []
        self.history = history or []
