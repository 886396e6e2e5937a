"""Document mutation pipeline for AI-assisted text editing."""

__all__ = [
    "ai",
    "editor",
    "events",
    "services",
    "session",
    "utils",
]

__version__ = "0.1.0"
