"""Tests for stopping the WhisperKit subprocess."""

import subprocess
import threading
import time

import pytest

from mindcare.providers.stt.whisperkit import WhisperKitCapability


class StubbornProcess:
    """Ignores terminate() until it is killed."""

    def __init__(self):
        self.calls = []
        self.killed = threading.Event()

    def poll(self):
        return -9 if self.killed.is_set() else None

    def terminate(self):
        self.calls.append("terminate")

    def kill(self):
        self.calls.append("kill")
        self.killed.set()

    def wait(self, timeout=None):
        if not self.killed.wait(timeout):
            raise subprocess.TimeoutExpired("whisperkit-cli", timeout)
        return -9


@pytest.fixture
def capability(tmp_path):
    executable = tmp_path / "whisperkit-cli"
    executable.write_text("#!/bin/sh\n")
    executable.chmod(0o755)
    return WhisperKitCapability(executable=str(executable))


class TestWhisperKitStop:

    def test_missing_executable(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            WhisperKitCapability(executable=str(tmp_path / "nothing-here"))

    def test_stop_does_not_wait_for_exit(self, capability):
        process = StubbornProcess()
        capability.process = process
        capability.terminate_timeout = 0.2

        started = time.monotonic()
        capability.stop()

        assert time.monotonic() - started < 0.1
        assert process.calls == ["terminate"]
        # Killed in the background once the timeout passes
        assert process.killed.wait(2)
        assert process.calls == ["terminate", "kill"]

    def test_abort_kills_immediately(self, capability):
        process = StubbornProcess()
        capability.process = process

        capability.abort()

        assert process.calls == ["kill"]

    def test_stop_without_process(self, capability):
        capability.stop()
        assert capability.get_status()["process_alive"] is False
