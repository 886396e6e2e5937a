"""Command-to-strategy resolution backed by a YAML command table.

The table ships as package data (``data/commands.yaml``) so the command
vocabulary lives in configuration rather than in conditionals. It is parsed
with ``ruamel.yaml`` and validated against :data:`COMMAND_TABLE_SCHEMA`
before use.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping

from jsonschema import Draft7Validator
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .errors import CommandTableError

LOGGER = logging.getLogger(__name__)

MAX_SCHEMA_ERRORS = 25


class Strategy(str, Enum):
    """How newly generated text merges into the document."""

    REPLACE = "replace"
    APPEND = "append"
    TARGETED_EDIT = "targeted-edit"
    CONTEXT_ONLY = "context-only"
    INSERT_AT_CURSOR = "insert-at-cursor"

    @property
    def targets_selection(self) -> bool:
        return self in (Strategy.TARGETED_EDIT, Strategy.INSERT_AT_CURSOR)


_STRATEGY_VALUES = [strategy.value for strategy in Strategy]

COMMAND_TABLE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["commands"],
    "additionalProperties": False,
    "properties": {
        "version": {"type": "integer", "minimum": 1},
        "default": {"$ref": "#/definitions/command"},
        "commands": {
            "type": "object",
            "propertyNames": {"pattern": "^[a-z][a-z0-9_-]*$"},
            "additionalProperties": {"$ref": "#/definitions/command"},
        },
    },
    "definitions": {
        "command": {
            "type": "object",
            "required": ["strategy"],
            "additionalProperties": False,
            "properties": {
                "strategy": {"enum": _STRATEGY_VALUES},
                "selection_strategy": {"enum": _STRATEGY_VALUES},
                "no_selection_strategy": {"enum": _STRATEGY_VALUES},
                "complex_edit": {"type": "boolean"},
                "description": {"type": "string"},
                "message": {"type": "string"},
            },
        },
    },
}
_TABLE_VALIDATOR = Draft7Validator(COMMAND_TABLE_SCHEMA)


@dataclass(slots=True, frozen=True)
class CommandSpec:
    """One row of the command table."""

    name: str
    strategy: Strategy
    selection_strategy: Strategy | None = None
    no_selection_strategy: Strategy | None = None
    complex_edit: bool = False
    description: str = ""
    message: str | None = None

    def strategy_for(self, has_selection: bool) -> Strategy:
        """Return the strategy the host should request for the given selection state."""

        if has_selection and self.selection_strategy is not None:
            return self.selection_strategy
        if not has_selection and self.no_selection_strategy is not None:
            return self.no_selection_strategy
        return self.strategy


_DEFAULT_SPEC = CommandSpec(name="default", strategy=Strategy.REPLACE)


@dataclass(slots=True, frozen=True)
class CommandTable:
    """Immutable command vocabulary keyed by normalized command name."""

    commands: Mapping[str, CommandSpec]
    default: CommandSpec = _DEFAULT_SPEC

    def get(self, name: str) -> CommandSpec | None:
        return self.commands.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self.commands

    def __len__(self) -> int:
        return len(self.commands)


def normalize_command(command: Any) -> str:
    """Return the canonical lookup key for ``command`` (``"/Fix "`` -> ``"fix"``)."""

    if not isinstance(command, str):
        return ""
    return command.strip().lstrip("/").strip().lower()


def load_command_table(path: str | Path | None = None) -> CommandTable:
    """Load and validate a command table, defaulting to the bundled one.

    Raises:
        CommandTableError: If the YAML cannot be parsed or fails validation.
    """

    if path is None:
        source = "inkflow.ai/data/commands.yaml"
        text = resources.files("inkflow.ai").joinpath("data/commands.yaml").read_text(encoding="utf-8")
    else:
        source = str(path)
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise CommandTableError(
                message=f"Unable to read command table {source}",
                details={"path": source, "reason": str(exc)},
            ) from exc
    return parse_command_table(text, source=source)


def parse_command_table(text: str, *, source: str = "<string>") -> CommandTable:
    """Parse YAML ``text`` into a :class:`CommandTable`."""

    parser = _create_yaml_parser()
    try:
        payload = parser.load(text)
    except YAMLError as exc:
        raise CommandTableError(
            message=f"Command table {source} is not valid YAML",
            details={"path": source},
            problems=(str(exc),),
        ) from exc

    problems = _schema_problems(payload)
    if problems:
        raise CommandTableError(
            message=f"Command table {source} failed validation",
            details={"path": source},
            problems=tuple(problems),
        )

    commands = {
        name: _build_spec(name, entry)
        for name, entry in payload["commands"].items()
    }
    default_entry = payload.get("default")
    default = _build_spec("default", default_entry) if default_entry else _DEFAULT_SPEC
    LOGGER.debug("Loaded %d commands from %s", len(commands), source)
    return CommandTable(commands=commands, default=default)


class StrategyResolver:
    """Maps command identifiers to mutation strategies.

    ``resolve`` is total: anything not in the table, including non-string
    input, resolves to the table default (``replace``).
    """

    def __init__(self, table: CommandTable | None = None) -> None:
        self._table = table if table is not None else bundled_command_table()

    @property
    def table(self) -> CommandTable:
        return self._table

    def spec_for(self, command: Any) -> CommandSpec:
        return self._table.get(normalize_command(command)) or self._table.default

    def resolve(self, command: Any) -> Strategy:
        return self.spec_for(command).strategy

    def is_known(self, command: Any) -> bool:
        return normalize_command(command) in self._table

    def is_complex_edit(self, command: Any) -> bool:
        return self.spec_for(command).complex_edit

    def describe(self, command: Any) -> str:
        spec = self.spec_for(command)
        return spec.description or self._table.default.description

    def commands(self) -> tuple[CommandSpec, ...]:
        """Return the known commands in table order, for menus."""

        return tuple(self._table.commands.values())


@lru_cache(maxsize=1)
def bundled_command_table() -> CommandTable:
    return load_command_table()


@lru_cache(maxsize=1)
def default_resolver() -> StrategyResolver:
    return StrategyResolver()


def _create_yaml_parser() -> YAML:
    parser = YAML(typ="safe")
    parser.allow_duplicate_keys = False
    return parser


def _schema_problems(payload: Any) -> list[str]:
    problems: list[str] = []
    for issue in _TABLE_VALIDATOR.iter_errors(payload):
        path = _format_schema_path(issue.absolute_path)
        problems.append(f"{path}: {issue.message}" if path else issue.message)
        if len(problems) >= MAX_SCHEMA_ERRORS:
            problems.append("Too many validation errors; stopping early.")
            break
    return problems


def _format_schema_path(parts: Iterable[Any]) -> str:
    return ".".join(str(part) for part in parts)


def _build_spec(name: str, entry: Mapping[str, Any]) -> CommandSpec:
    def _optional(key: str) -> Strategy | None:
        value = entry.get(key)
        return Strategy(value) if value else None

    return CommandSpec(
        name=name,
        strategy=Strategy(entry["strategy"]),
        selection_strategy=_optional("selection_strategy"),
        no_selection_strategy=_optional("no_selection_strategy"),
        complex_edit=bool(entry.get("complex_edit", False)),
        description=str(entry.get("description", "")),
        message=entry.get("message"),
    )


__all__ = [
    "COMMAND_TABLE_SCHEMA",
    "CommandSpec",
    "CommandTable",
    "Strategy",
    "StrategyResolver",
    "bundled_command_table",
    "default_resolver",
    "load_command_table",
    "normalize_command",
    "parse_command_table",
]
