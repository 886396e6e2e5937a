"""Document session tying the parse, mutate and history stages together.

A :class:`DocumentSession` owns one document. The host editor surface calls
into it for keystrokes, selection changes and AI commands, and subscribes to
its :class:`~inkflow.events.EventBus` for results. Only the most recently
issued request may change the document; responses for older tickets are
dropped untouched.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .ai.errors import ErrorCode, PipelineError, RequestDroppedError, StaleSelectionError
from .ai.mutation import MutationApplier, MutationFlags, MutationResult
from .ai.response_parser import ParsedResponse, ResponseParser
from .ai.stream_parser import ChunkKind, ReasoningStreamParser, StreamChunk
from .ai.strategies import Strategy, StrategyResolver, default_resolver, normalize_command
from .editor.document_model import DocumentState, SelectionRange
from .editor.history import HistoryEntry, UndoRedoManager
from .editor.scheduling import Scheduler
from .editor.selection_context import SelectionInfo, capture_selection
from .events import (
    DocumentReplayed,
    EventBus,
    HistoryChanged,
    MutationApplied,
    ReasoningAvailable,
    RequestDropped,
    RequestStarted,
    SuggestionsReady,
)
from .services import telemetry
from .services.settings import PipelineSettings, load_settings
from .utils.text_stats import DocumentStats, count_words, document_stats, snippet

__all__ = ["DocumentSession", "MutationOutcome", "OutcomeStatus", "RequestTicket"]

LOGGER = logging.getLogger(__name__)


class OutcomeStatus(str, Enum):
    """What happened to a completed request."""

    APPLIED = "applied"
    SUGGESTED = "suggested"
    DROPPED = "dropped"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass(slots=True)
class RequestTicket:
    """Everything captured when a command was issued."""

    request_id: str
    command: str
    selection: SelectionInfo
    flags: MutationFlags
    version_id: int
    content: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    stream: ReasoningStreamParser = field(default_factory=ReasoningStreamParser, repr=False, compare=False)


@dataclass(slots=True)
class MutationOutcome:
    """Result of :meth:`DocumentSession.complete_request` and friends."""

    request_id: str
    status: OutcomeStatus
    parsed: ParsedResponse | None = None
    result: MutationResult | None = None
    error: PipelineError | None = None

    @property
    def applied(self) -> bool:
        return self.status is OutcomeStatus.APPLIED

    @property
    def message(self) -> str:
        """Human-readable summary for the status bar."""

        if self.error is not None:
            return self.error.message
        if self.result is not None:
            return self.result.message
        return ""


class DocumentSession:
    """Owns a document, its undo/redo history and the in-flight AI request."""

    def __init__(
        self,
        content: str = "",
        title: str = "Untitled Document",
        *,
        settings: PipelineSettings | None = None,
        scheduler: Scheduler | None = None,
        resolver: StrategyResolver | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._settings = settings if settings is not None else load_settings()
        self._resolver = resolver or default_resolver()
        self._parser = ResponseParser(resolver=self._resolver, settings=self._settings)
        self._applier = MutationApplier(self._resolver)
        self._events: EventBus = event_bus if event_bus is not None else EventBus()
        self._document = DocumentState(text=content or "", title=title)
        self._document.collapse_selection()
        self._history = UndoRedoManager(
            self._document.history_entry(),
            scheduler=scheduler,
            max_history_size=self._settings.history_max_size,
            debounce_ms=self._settings.history_debounce_ms,
            replay_settle_ms=self._settings.replay_settle_ms,
            listener=self._on_history_changed,
        )
        self._active: RequestTicket | None = None
        self._closed = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def document(self) -> DocumentState:
        return self._document

    @property
    def history(self) -> UndoRedoManager:
        return self._history

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def settings(self) -> PipelineSettings:
        return self._settings

    @property
    def resolver(self) -> StrategyResolver:
        return self._resolver

    @property
    def active_request(self) -> RequestTicket | None:
        return self._active

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # SelectionSource
    # ------------------------------------------------------------------
    def text(self) -> str:
        return self._document.text

    def selection_span(self) -> tuple[int, int] | None:
        return self._document.selection.as_tuple()

    def set_selection(self, start: int, end: int | None = None) -> SelectionRange:
        """Move the caret or selection; offsets are clamped to the document."""

        info = capture_selection(self._document.text, start, start if end is None else end)
        self._document.selection = SelectionRange(info.selection_start, info.selection_end)
        return self._document.selection

    def capture_selection(self, start: int | None = None, end: int | None = None) -> SelectionInfo:
        """Snapshot the selection, either the current one or the given offsets."""

        if start is None and end is None:
            start, end = self._document.selection.as_tuple()
        return capture_selection(self._document.text, start, end)

    # ------------------------------------------------------------------
    # Organic edits
    # ------------------------------------------------------------------
    def edit(self, content: str, *, caret: int | None = None) -> None:
        """Apply a user edit (keystrokes, paste) and feed it to the history."""

        if not self._document.update_text(content or ""):
            return
        self._document.collapse_selection(caret)
        self._history.push_state(self._document.history_entry())

    def rename(self, title: str) -> None:
        if title == self._document.title:
            return
        self._document.rename(title)
        self._history.push_state(self._document.history_entry())

    # ------------------------------------------------------------------
    # AI requests
    # ------------------------------------------------------------------
    def begin_request(
        self,
        command: str,
        *,
        flags: MutationFlags | None = None,
        selection: SelectionInfo | None = None,
    ) -> RequestTicket:
        """Capture the selection for ``command`` and make it the active request.

        A previously active request is superseded; its response will be
        dropped when it arrives. Without explicit ``flags`` they are derived
        from the command table and whether text is selected.
        """

        captured = selection if selection is not None else self.capture_selection()
        ticket = RequestTicket(
            request_id=uuid.uuid4().hex,
            command=normalize_command(command) or str(command or ""),
            selection=captured,
            flags=flags if flags is not None else self._derive_flags(command, captured),
            version_id=self._document.version_id,
            content=self._document.text,
        )
        if self._active is not None:
            LOGGER.debug("Request %s superseded by %s", self._active.request_id, ticket.request_id)
        self._active = ticket
        LOGGER.info(
            "Request %s started for %r (selection %d-%d)",
            ticket.request_id,
            ticket.command,
            captured.selection_start,
            captured.selection_end,
        )
        self._events.publish(
            RequestStarted(request_id=ticket.request_id, command=ticket.command, has_selection=captured.has_selection)
        )
        return ticket

    def stream_chunk(self, ticket: RequestTicket, chunk: str) -> list[StreamChunk]:
        """Feed streamed model text; reasoning chunks are published as they arrive."""

        if self._closed or not self._is_active(ticket):
            return []
        chunks = ticket.stream.feed(chunk)
        for item in chunks:
            if item.kind is ChunkKind.THINKING:
                self._events.publish(
                    ReasoningAvailable(request_id=ticket.request_id, text=item.content, complete=item.complete)
                )
        return chunks

    def complete_request(self, ticket: RequestTicket, raw_text: str) -> MutationOutcome:
        """Parse ``raw_text`` for ``ticket`` and apply it to the document.

        Never raises; problems are reported through the returned outcome.
        """

        if self._closed:
            closed = PipelineError(code=ErrorCode.SESSION_CLOSED, message="The document was closed")
            return self._drop(ticket, closed)
        if not self._is_active(ticket):
            return self._drop(ticket, RequestDroppedError(details={"request_id": ticket.request_id}))
        self._active = None

        document = self._document
        saved = (document.text, document.version_id, document.selection, document.dirty)
        try:
            return self._complete(ticket, raw_text)
        except Exception as exc:
            LOGGER.exception("Failed to apply response for request %s", ticket.request_id)
            document.text, document.version_id, document.selection, document.dirty = saved
            error = PipelineError(
                code=ErrorCode.INTERNAL_ERROR,
                message="The AI response could not be applied",
                details={"reason": str(exc)},
            )
            return MutationOutcome(request_id=ticket.request_id, status=OutcomeStatus.FAILED, error=error)

    def fail_request(self, ticket: RequestTicket, message: str) -> MutationOutcome:
        """Report that the model call behind ``ticket`` failed."""

        error = PipelineError(
            code=ErrorCode.MODEL_FAILURE,
            message=message or "The AI request failed",
            suggestion="Please try the command again",
        )
        if self._closed or not self._is_active(ticket):
            return self._drop(ticket, RequestDroppedError(details={"request_id": ticket.request_id}))
        self._active = None
        LOGGER.warning("Request %s failed: %s", ticket.request_id, error.message)
        self._publish_dropped(ticket, error)
        return MutationOutcome(request_id=ticket.request_id, status=OutcomeStatus.FAILED, error=error)

    def cancel_request(self, ticket: RequestTicket | None = None) -> bool:
        """Cancel ``ticket`` (or the active request). Returns ``True`` if one was cancelled."""

        active = self._active
        if active is None or (ticket is not None and ticket.request_id != active.request_id):
            return False
        self._active = None
        telemetry.emit(
            "request.dropped",
            {"request_id": active.request_id, "command": active.command, "reason": "cancelled"},
        )
        self._events.publish(
            RequestDropped(
                request_id=active.request_id,
                command=active.command,
                reason="cancelled",
                message="The AI request was cancelled",
            )
        )
        return True

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def undo(self) -> HistoryEntry | None:
        entry = self._history.undo()
        if entry is not None:
            self._apply_entry(entry, "undo")
        return entry

    def redo(self) -> HistoryEntry | None:
        entry = self._history.redo()
        if entry is not None:
            self._apply_entry(entry, "redo")
        return entry

    def clear_history(self) -> None:
        self._history.clear_history()

    def close(self) -> None:
        """Cancel timers and drop the active request. The session stays readable."""

        if self._closed:
            return
        self._closed = True
        if self._active is not None:
            self.cancel_request(self._active)
        self._history.close()
        LOGGER.debug("Session for document %s closed", self._document.document_id)

    def stats(self) -> DocumentStats:
        return document_stats(self._document.text)

    def snapshot(self) -> dict[str, Any]:
        """Document state plus undo/redo availability, for the host surface."""

        payload = self._document.snapshot()
        payload.update(
            can_undo=self._history.can_undo,
            can_redo=self._history.can_redo,
            active_request=self._active.request_id if self._active is not None else None,
        )
        return payload

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _complete(self, ticket: RequestTicket, raw_text: str) -> MutationOutcome:
        parsed = self._parser.parse(raw_text, ticket.command, ticket.content, ticket.selection)
        if parsed.thinking:
            self._events.publish(ReasoningAvailable(request_id=ticket.request_id, text=parsed.thinking))

        if not parsed.is_context_only and self._is_stale(ticket):
            error = StaleSelectionError(
                details={"requested_version": ticket.version_id, "current_version": self._document.version_id}
            )
            LOGGER.info("Rejecting response for request %s: document changed", ticket.request_id)
            self._publish_dropped(ticket, error)
            return MutationOutcome(
                request_id=ticket.request_id, status=OutcomeStatus.REJECTED, parsed=parsed, error=error
            )

        current = self._document.text
        result = self._applier.apply(parsed, ticket.selection, current, ticket.command, ticket.flags)

        if not result.writes_document:
            error = None
            status = OutcomeStatus.SUGGESTED
            if parsed.parse_failed:
                error = PipelineError(code=ErrorCode.PARSE_FAILED, message="The AI response could not be processed")
                status = OutcomeStatus.FAILED
            self._events.publish(
                SuggestionsReady(
                    request_id=ticket.request_id,
                    command=ticket.command,
                    suggestions=result.side_channel,
                    message=error.message if error is not None else result.message,
                )
            )
            return MutationOutcome(
                request_id=ticket.request_id, status=status, parsed=parsed, result=result, error=error
            )

        if result.changed:
            # History first: a scheduling failure must leave the text untouched.
            self._history.push_state(HistoryEntry(title=self._document.title, content=result.content))
            self._document.update_text(result.content)
        self._document.collapse_selection(result.caret)

        telemetry.emit(
            "mutation.applied",
            {
                "request_id": ticket.request_id,
                "command": ticket.command,
                "branch": result.branch.value,
                "changed": result.changed,
                "words_before": count_words(current),
                "words_after": count_words(result.content),
                "truncated": bool(parsed.metadata.get("truncated")),
            },
        )
        LOGGER.info("Request %s applied via %s", ticket.request_id, result.branch.value)
        self._events.publish(
            MutationApplied(
                request_id=ticket.request_id,
                command=ticket.command,
                branch=result.branch.value,
                caret=result.caret,
                message=result.message,
                summary=snippet(parsed.content),
            )
        )
        return MutationOutcome(request_id=ticket.request_id, status=OutcomeStatus.APPLIED, parsed=parsed, result=result)

    def _derive_flags(self, command: Any, selection: SelectionInfo) -> MutationFlags:
        spec = self._resolver.spec_for(command)
        if selection.has_selection:
            requested = spec.strategy_for(True)
            return MutationFlags(replace_selection=requested.targets_selection)
        return MutationFlags(replace_entire_content=spec.no_selection_strategy is Strategy.REPLACE)

    def _is_active(self, ticket: RequestTicket) -> bool:
        return self._active is not None and self._active.request_id == ticket.request_id

    def _is_stale(self, ticket: RequestTicket) -> bool:
        if not self._settings.reject_stale_selection:
            return False
        return self._document.version_id != ticket.version_id

    def _drop(self, ticket: RequestTicket, error: PipelineError) -> MutationOutcome:
        LOGGER.debug("Dropping response for request %s (%s)", ticket.request_id, error.code)
        self._publish_dropped(ticket, error)
        return MutationOutcome(request_id=ticket.request_id, status=OutcomeStatus.DROPPED, error=error)

    def _publish_dropped(self, ticket: RequestTicket, error: PipelineError) -> None:
        telemetry.emit(
            "request.dropped",
            {"request_id": ticket.request_id, "command": ticket.command, "reason": error.code},
        )
        self._events.publish(
            RequestDropped(
                request_id=ticket.request_id,
                command=ticket.command,
                reason=error.code,
                message=error.message,
            )
        )

    def _apply_entry(self, entry: HistoryEntry, direction: str) -> None:
        self._document.update_text(entry.content)
        if entry.title != self._document.title:
            self._document.rename(entry.title)
        self._document.collapse_selection()
        # The manager is replaying, so this echo is ignored.
        self._history.push_state(self._document.history_entry())
        self._events.publish(DocumentReplayed(direction=direction, title=entry.title, content=entry.content))

    def _on_history_changed(self, manager: UndoRedoManager) -> None:
        self._events.publish(
            HistoryChanged(
                current_index=manager.current_index,
                history_size=manager.history_size,
                can_undo=manager.can_undo,
                can_redo=manager.can_redo,
            )
        )

