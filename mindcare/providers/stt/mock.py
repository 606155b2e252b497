"""Scripted speech capability for mock runs."""

import asyncio
from typing import List, Optional, Sequence

from .base import (
    CapabilityEnded,
    CapabilityResult,
    CapabilityStarted,
    RecognitionAlternative,
    RecognitionResult,
    SpeechCapability,
)


DEFAULT_PHRASES = (
    "I have been feeling stressed",
    "about work lately",
)


class ScriptedCapability(SpeechCapability):
    """Speech capability that 'hears' a fixed list of phrases."""

    def __init__(self, phrases: Optional[Sequence[str]] = None, interval: float = 1.5):
        super().__init__()
        self.phrases = list(phrases or DEFAULT_PHRASES)
        self.interval = interval
        self.is_running = False
        self.sessions_started = 0
        self._handles: List[asyncio.Handle] = []

    def start(self) -> None:
        if self.is_running:
            raise RuntimeError("Scripted capture already running")

        loop = asyncio.get_running_loop()
        self.is_running = True
        self.sessions_started += 1
        self._handles = [loop.call_soon(self.emit, CapabilityStarted())]

        results: List[RecognitionResult] = []
        for index, phrase in enumerate(self.phrases, start=1):
            results = results + [RecognitionResult([RecognitionAlternative(phrase, 0.95)], True)]
            self._handles.append(
                loop.call_later(self.interval * index, self.emit, CapabilityResult(results))
            )

        if not self.continuous:
            self._handles.append(
                loop.call_later(self.interval * (len(self.phrases) + 1), self._finish)
            )

    def _finish(self) -> None:
        self.is_running = False
        self.emit(CapabilityEnded())

    def _cancel_pending(self) -> None:
        for handle in self._handles:
            handle.cancel()
        self._handles = []

    def stop(self) -> None:
        if not self.is_running:
            return
        self._cancel_pending()
        asyncio.get_running_loop().call_soon(self._finish)

    def abort(self) -> None:
        self.stop()

    def get_status(self) -> dict:
        return {
            "provider": "scripted",
            "is_running": self.is_running,
            "phrases": len(self.phrases),
            "sessions_started": self.sessions_started,
        }
