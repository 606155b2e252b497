"""WhisperKit speech capability driven by the whisperkit-cli streaming mode."""

import asyncio
import os
import shutil
import subprocess
import sys
import threading
from typing import List, Optional

import structlog

from .base import (
    CapabilityEnded,
    CapabilityError,
    CapabilityEvent,
    CapabilityResult,
    CapabilityStarted,
    RecognitionAlternative,
    RecognitionResult,
    SpeechCapability,
)


logger = structlog.get_logger()


class WhisperKitCapability(SpeechCapability):
    """
    Continuous recognition backed by a `whisperkit-cli transcribe --stream`
    subprocess capturing the microphone.

    Each confirmed line printed by the CLI becomes a final result; a reader
    thread hands events back to the event loop that called start().
    """

    def __init__(
        self,
        executable: str = "/opt/homebrew/bin/whisperkit-cli",
        model: str = "large-v3_turbo",
        vad_enabled: bool = True,
        compute_units: str = "cpuAndNeuralEngine",
    ):
        super().__init__()
        resolved = executable if os.access(executable, os.X_OK) else shutil.which(executable)
        if not resolved:
            raise FileNotFoundError(f"whisperkit-cli not found: {executable}")

        self.executable = resolved
        self.model = model
        self.vad_enabled = vad_enabled
        self.compute_units = compute_units

        self.process: Optional[subprocess.Popen] = None
        self._reader: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._results: List[RecognitionResult] = []
        self._stopping = False
        self.sessions_started = 0
        self.terminate_timeout = 2.0  # seconds before a stopped process is killed

    @classmethod
    def is_supported(cls) -> bool:
        # WhisperKit only ships for Apple platforms
        return sys.platform == "darwin"

    def _command(self) -> List[str]:
        cmd = [
            self.executable,
            "transcribe",
            "--stream",
            "--model", self.model,
            "--language", self.language.value.split("-")[0],
            "--audio-encoder-compute-units", self.compute_units,
            "--text-decoder-compute-units", self.compute_units,
        ]
        if self.vad_enabled:
            cmd.extend(["--chunking-strategy", "vad"])
        return cmd

    def start(self) -> None:
        if self.process is not None and self.process.poll() is None:
            raise RuntimeError("WhisperKit capture already running")

        # Raises RuntimeError when called outside the event loop
        self._loop = asyncio.get_running_loop()
        self._results = []
        self._stopping = False

        cmd = self._command()
        self.process = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            bufsize=1,
        )
        self.sessions_started += 1
        logger.info("WhisperKit capture started", pid=self.process.pid, command=" ".join(cmd))

        self._post(CapabilityStarted())
        self._reader = threading.Thread(
            target=self._read_loop, args=(self.process,), daemon=True, name="WhisperKit-Reader"
        )
        self._reader.start()

    def _post(self, event: CapabilityEvent) -> None:
        if self._loop is None:
            return
        try:
            self._loop.call_soon_threadsafe(self.emit, event)
        except RuntimeError:
            logger.debug("Event loop closed, dropping capability event", event=type(event).__name__)

    def _read_loop(self, process: subprocess.Popen) -> None:
        for line in process.stdout:
            text = line.strip()
            if not text:
                continue
            self._results.append(
                RecognitionResult([RecognitionAlternative(text)], is_final=True)
            )
            self._post(CapabilityResult(list(self._results)))
            if not self.continuous:
                self.stop()
                break

        returncode = process.wait()
        if returncode != 0 and not self._stopping:
            stderr = process.stderr.read() if process.stderr else ""
            logger.warning("WhisperKit exited with error", returncode=returncode, stderr=stderr[-500:])
            self._post(CapabilityError("audio-capture"))
        self._post(CapabilityEnded())

    def _terminate(self, kill: bool) -> None:
        process = self.process
        if process is None or process.poll() is not None:
            return

        self._stopping = True
        if kill:
            process.kill()
            return

        process.terminate()
        # The reader thread reaps the process; the kill fallback waits off the loop
        threading.Thread(
            target=self._kill_if_alive, args=(process,), daemon=True, name="WhisperKit-Reaper"
        ).start()

    def _kill_if_alive(self, process: subprocess.Popen) -> None:
        try:
            process.wait(timeout=self.terminate_timeout)
        except subprocess.TimeoutExpired:
            logger.warning("WhisperKit didn't terminate, killing process")
            process.kill()

    def stop(self) -> None:
        logger.info("Stopping WhisperKit capture")
        self._terminate(kill=False)

    def abort(self) -> None:
        logger.info("Aborting WhisperKit capture")
        self._terminate(kill=True)

    def get_status(self) -> dict:
        return {
            "provider": "whisperkit",
            "model": self.model,
            "language": self.language.value,
            "process_alive": self.process is not None and self.process.poll() is None,
            "results": len(self._results),
            "sessions_started": self.sessions_started,
        }
