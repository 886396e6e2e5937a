"""Errors reported by the mutation pipeline.

Public pipeline operations do not raise these at the host. They travel on
:class:`~inkflow.session.MutationOutcome` so the editor can show ``message``
and log the rest. ``CommandTableError`` is the exception: a broken command
table is a configuration bug and fails loudly at load time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


class ErrorCode:
    """Machine-readable codes carried by :class:`PipelineError`."""

    COMMAND_TABLE_INVALID = "command_table_invalid"
    PARSE_FAILED = "parse_failed"
    STALE_SELECTION = "stale_selection"
    REQUEST_SUPERSEDED = "request_superseded"
    SESSION_CLOSED = "session_closed"
    MODEL_FAILURE = "model_failure"
    INTERNAL_ERROR = "internal_error"


@dataclass
class PipelineError(Exception):
    """Base class for pipeline errors.

    Attributes:
        code: One of the :class:`ErrorCode` constants.
        message: What the user is told.
        details: Structured context for logs, never document text.
        suggestion: Optional next step for the user.
    """

    code: str = ErrorCode.INTERNAL_ERROR
    message: str = "The AI response could not be applied"
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = ""

    severity: ClassVar[str] = "error"

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.code, "message": self.message, "severity": self.severity}
        if self.details:
            payload["details"] = dict(self.details)
        if self.suggestion:
            payload["suggestion"] = self.suggestion
        return payload


@dataclass
class CommandTableError(PipelineError):
    """The command table could not be read, parsed or validated."""

    code: str = ErrorCode.COMMAND_TABLE_INVALID
    message: str = "The command table is invalid"
    suggestion: str = "Check the YAML syntax and the keys allowed for each command"
    problems: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        payload = PipelineError.to_dict(self)
        if self.problems:
            payload["problems"] = list(self.problems)
        return payload


@dataclass
class StaleSelectionError(PipelineError):
    """The document changed after the request captured its selection."""

    code: str = ErrorCode.STALE_SELECTION
    message: str = "The document changed while the AI was working; the edit was not applied"
    suggestion: str = "Re-select the text and run the command again"

    severity: ClassVar[str] = "warning"


@dataclass
class RequestDroppedError(PipelineError):
    """A response arrived for a request that is no longer the active one."""

    code: str = ErrorCode.REQUEST_SUPERSEDED
    message: str = "A newer command replaced this one; its response was discarded"

    severity: ClassVar[str] = "info"


__all__ = [
    "CommandTableError",
    "ErrorCode",
    "PipelineError",
    "RequestDroppedError",
    "StaleSelectionError",
]
