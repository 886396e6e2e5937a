"""Response parsing, strategy resolution and mutation of AI output."""

from .mutation import MutationApplier, MutationBranch, MutationFlags, MutationResult
from .response_parser import ParsedResponse, ResponseParser
from .strategies import CommandSpec, Strategy, StrategyResolver, load_command_table

__all__ = [
    "CommandSpec",
    "MutationApplier",
    "MutationBranch",
    "MutationFlags",
    "MutationResult",
    "ParsedResponse",
    "ResponseParser",
    "Strategy",
    "StrategyResolver",
    "load_command_table",
]
