"""Shared fixtures for the MindCare tests."""

from typing import List, Tuple

import pytest

from mindcare.config.locales import Language
from mindcare.metrics.collector import MetricsCollector
from mindcare.providers.ai.canned import CannedResponseEngine
from mindcare.providers.stt.base import (
    CapabilityEnded,
    CapabilityError,
    CapabilityProbe,
    CapabilityResult,
    CapabilityStarted,
    RecognitionAlternative,
    RecognitionResult,
    SpeechCapability,
)
from mindcare.state.persistence import MemoryStorage
from mindcare.state.session_manager import SessionStore
from mindcare.utils.notifications import Notifier
from mindcare.voice.controller import VoiceController


class FakeCapability(SpeechCapability):
    """Records start/stop calls; tests drive the events by hand."""

    def __init__(self):
        super().__init__()
        self.calls: List[Tuple[str, Language]] = []
        self.fail_start = False

    def start(self) -> None:
        self.calls.append(("start", self.language))
        if self.fail_start:
            raise RuntimeError("microphone busy")

    def stop(self) -> None:
        self.calls.append(("stop", self.language))

    def abort(self) -> None:
        self.calls.append(("abort", self.language))

    def get_status(self) -> dict:
        return {"provider": "fake", "calls": len(self.calls)}

    @property
    def starts(self) -> List[Language]:
        return [language for name, language in self.calls if name == "start"]

    def started(self) -> None:
        self.emit(CapabilityStarted())

    def result(self, *phrases: str) -> None:
        self.emit(
            CapabilityResult(
                [RecognitionResult([RecognitionAlternative(phrase, 0.9)], True) for phrase in phrases]
            )
        )

    def error(self, kind: str) -> None:
        self.emit(CapabilityError(kind))

    def ended(self) -> None:
        self.emit(CapabilityEnded())


@pytest.fixture
def fake_capability():
    return FakeCapability()


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def metrics(tmp_path):
    collector = MetricsCollector(tmp_path / "metrics")
    collector.start_session("test-run")
    return collector


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def engine():
    return CannedResponseEngine(latency=0)


@pytest.fixture
def store(engine, storage, notifier, metrics):
    return SessionStore(engine, storage=storage, notifier=notifier, metrics=metrics)


@pytest.fixture
def controller(fake_capability, notifier, metrics):
    return VoiceController(
        CapabilityProbe(available=True, capability=fake_capability),
        notifier=notifier,
        metrics=metrics,
        reconnect_delay=0.01,
        language_restart_delay=0.01,
    )
