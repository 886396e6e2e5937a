"""Tests for :mod:`inkflow.services.settings`."""

from __future__ import annotations

import logging

from inkflow.services.settings import DEFAULT_TRUNCATION_NOTICE, PipelineSettings, load_settings


def test_defaults() -> None:
    settings = load_settings(environ={})

    assert settings == PipelineSettings()
    assert settings.max_content_length == 50_000
    assert settings.truncation_notice == DEFAULT_TRUNCATION_NOTICE
    assert settings.history_debounce_seconds == 0.3
    assert settings.replay_settle_seconds == 0.1
    assert settings.history_max_size == 50
    assert settings.reject_stale_selection is False


def test_environment_overrides() -> None:
    settings = load_settings(
        environ={
            "INKFLOW_MAX_CONTENT_LENGTH": "1000",
            "INKFLOW_HISTORY_DEBOUNCE_MS": "0",
            "INKFLOW_HISTORY_MAX_SIZE": "5",
            "INKFLOW_REPLAY_SETTLE_MS": "20",
            "INKFLOW_REJECT_STALE_SELECTION": "yes",
            "INKFLOW_DEBUG_LOGGING": "1",
        }
    )

    assert settings.max_content_length == 1000
    assert settings.history_debounce_ms == 0
    assert settings.history_max_size == 5
    assert settings.replay_settle_ms == 20
    assert settings.reject_stale_selection is True
    assert settings.debug_logging is True


def test_invalid_environment_values_are_skipped(caplog) -> None:
    with caplog.at_level(logging.WARNING):
        settings = load_settings(
            environ={"INKFLOW_HISTORY_MAX_SIZE": "lots", "INKFLOW_MAX_CONTENT_LENGTH": "0"}
        )

    assert settings.history_max_size == 50
    assert settings.max_content_length == 50_000
    assert "not a valid integer" in caplog.text


def test_explicit_overrides_beat_environment() -> None:
    settings = load_settings(
        {"history_max_size": 10, "truncation_notice": " [cut]"},
        environ={"INKFLOW_HISTORY_MAX_SIZE": "5"},
    )

    assert settings.history_max_size == 10
    assert settings.truncation_notice == " [cut]"


def test_unknown_and_wrongly_typed_overrides_are_ignored(caplog) -> None:
    with caplog.at_level(logging.WARNING):
        settings = load_settings({"colour": "red", "history_debounce_ms": True}, environ={})

    assert settings == PipelineSettings()
    assert "colour" in caplog.text


def test_as_dict_round_trips() -> None:
    settings = PipelineSettings(history_max_size=7)

    assert PipelineSettings(**settings.as_dict()) == settings
