"""Shared pytest fixtures."""

from __future__ import annotations

from typing import Iterator

import pytest

from inkflow.ai.strategies import StrategyResolver
from inkflow.editor.selection_context import capture_selection
from inkflow.services import telemetry
from inkflow.services.settings import PipelineSettings

from tests.helpers import ManualScheduler, Recorder


@pytest.fixture(autouse=True)
def _reset_telemetry() -> Iterator[None]:
    telemetry.clear_event_listeners()
    yield
    telemetry.clear_event_listeners()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def settings() -> PipelineSettings:
    return PipelineSettings()


@pytest.fixture
def resolver() -> StrategyResolver:
    return StrategyResolver()


@pytest.fixture
def telemetry_events() -> Recorder:
    """Record every telemetry event the pipeline emits."""

    recorder = Recorder()
    for name in (
        "response.parsed",
        "response.parse_failed",
        "response.truncated",
        "mutation.applied",
        "mutation.selection_invalid",
        "mutation.selection_stale",
        "history.recorded",
        "history.evicted",
        "history.replay",
        "request.dropped",
    ):
        telemetry.register_event_listener(name, recorder)
    return recorder


@pytest.fixture
def sample_selection():
    """The document ``A. B.`` with ``B.`` selected."""

    return capture_selection("A. B.", 3, 5)
