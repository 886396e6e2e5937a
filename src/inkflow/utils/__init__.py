"""Shared helpers (logging, text statistics)."""
