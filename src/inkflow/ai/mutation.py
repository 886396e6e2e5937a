"""Compute the new document text for a parsed model response."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from ..editor.selection_context import SelectionInfo
from ..services import telemetry
from .response_parser import ParsedResponse
from .strategies import Strategy, StrategyResolver, default_resolver, normalize_command

__all__ = [
    "APPEND_SEPARATOR",
    "MutationApplier",
    "MutationBranch",
    "MutationFlags",
    "MutationResult",
]

LOGGER = logging.getLogger(__name__)

APPEND_SEPARATOR = "\n\n"


class MutationBranch(str, Enum):
    """Which rule of the decision order produced the result."""

    CONTEXT_ONLY = "context-only"
    REPLACE_ENTIRE = "replace-entire"
    REPLACE_SELECTION = "replace-selection"
    APPEND = "append"
    REPLACE_FALLBACK = "replace-fallback"


@dataclass(slots=True, frozen=True)
class MutationFlags:
    """Explicit host overrides that short-circuit strategy inference."""

    replace_entire_content: bool = False
    replace_selection: bool = False


@dataclass(slots=True, frozen=True)
class MutationResult:
    """New document content plus everything the editor surface needs to follow up."""

    content: str
    branch: MutationBranch
    changed: bool
    side_channel: tuple[str, ...] = ()
    caret: int | None = None
    message: str = ""

    @property
    def writes_document(self) -> bool:
        return self.branch is not MutationBranch.CONTEXT_ONLY


class MutationApplier:
    """Pure decision table merging parsed content into the document.

    Rules are evaluated top to bottom and the first match wins:

    1. context-only strategy: document untouched, content goes to the side channel
    2. ``replace_entire_content`` flag: parsed content verbatim
    3. selection-targeting strategy (or ``replace_selection`` flag) with
       selected text: splice between the captured before/after strings
    4. ``continue`` command or append strategy: append after a blank line
    5. anything else: full replace
    """

    def __init__(self, resolver: StrategyResolver | None = None) -> None:
        self._resolver = resolver or default_resolver()

    def apply(
        self,
        parsed: ParsedResponse,
        selection: SelectionInfo,
        current_content: str,
        command: str,
        flags: MutationFlags | None = None,
    ) -> MutationResult:
        flags = flags or MutationFlags()
        current = current_content or ""
        new_text = parsed.content or ""
        name = normalize_command(command)

        if parsed.strategy is Strategy.CONTEXT_ONLY:
            side_channel = tuple(parsed.suggestions or [new_text])
            return MutationResult(
                content=current,
                branch=MutationBranch.CONTEXT_ONLY,
                changed=False,
                side_channel=side_channel,
                message=self._message(name, MutationBranch.CONTEXT_ONLY),
            )

        if flags.replace_entire_content:
            return self._result(current, new_text, MutationBranch.REPLACE_ENTIRE, len(new_text), name)

        wants_selection = parsed.strategy.targets_selection or flags.replace_selection
        if wants_selection and selection is not None and selection.has_selection:
            if selection.is_well_formed():
                if not selection.matches(current):
                    LOGGER.info("Applying %r against a selection captured before the document changed", name)
                    telemetry.emit("mutation.selection_stale", {"command": name})
                updated = selection.before_selection + new_text + selection.after_selection
                caret = len(selection.before_selection) + len(new_text)
                return self._result(current, updated, MutationBranch.REPLACE_SELECTION, caret, name)
            LOGGER.warning("Ignoring malformed selection for %r", name)
            telemetry.emit(
                "mutation.selection_invalid",
                {
                    "command": name,
                    "selection_start": selection.selection_start,
                    "selection_end": selection.selection_end,
                },
            )

        if name == "continue" or parsed.strategy is Strategy.APPEND:
            updated = current + APPEND_SEPARATOR + new_text
            return self._result(current, updated, MutationBranch.APPEND, len(updated), name)

        return self._result(current, new_text, MutationBranch.REPLACE_FALLBACK, len(new_text), name)

    def _result(
        self,
        current: str,
        updated: str,
        branch: MutationBranch,
        caret: int,
        command: str,
    ) -> MutationResult:
        return MutationResult(
            content=updated,
            branch=branch,
            changed=updated != current,
            caret=caret,
            message=self._message(command, branch),
        )

    def _message(self, command: str, branch: MutationBranch) -> str:
        spec = self._resolver.spec_for(command)
        label = command or "the AI response"
        if branch is MutationBranch.CONTEXT_ONLY:
            return spec.message or "Analysis complete - results available in the context panel."
        if branch is MutationBranch.APPEND:
            return spec.message or "New content has been added to your document."
        if branch is MutationBranch.REPLACE_SELECTION:
            return f"Applied {label} to the selected text."
        return f"Applied {label} to your text."
