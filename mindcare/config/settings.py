"""Configuration settings for the assistant."""

import os
import json
import threading
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Optional, Dict, Any, Union

import structlog
from dotenv import load_dotenv

from .locales import DEFAULT_LANGUAGE, Language


logger = structlog.get_logger()


@dataclass
class SpeechSettings:
    """Speech capability and voice controller settings."""
    provider: str = "whisperkit"
    whisperkit_path: str = "/opt/homebrew/bin/whisperkit-cli"
    whisperkit_model: str = "large-v3_turbo"
    reconnect_delay: float = 2.0  # seconds
    max_reconnection_attempts: int = 3
    language_restart_delay: float = 0.3  # seconds


@dataclass
class ResponseSettings:
    """Response engine settings."""
    engine: str = "canned"
    simulated_latency: float = 1.0  # seconds


@dataclass
class StorageSettings:
    """Local key-value storage settings."""
    directory: str = "~/.mindcare/storage"
    chat_namespace: str = "mindcare-chat-storage"
    auth_namespace: str = "mindcare-auth-storage"


@dataclass
class MetricsSettings:
    """Metrics collection settings."""
    enabled: bool = True
    directory: str = "~/.mindcare/metrics"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = "INFO"
    format: str = "json"
    file_enabled: bool = False
    directory: str = "./logs"
    file_rotation_mb: int = 10
    file_backup_count: int = 7
    retention_days: int = 7


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# Environment variable -> (section, field, converter)
_ENV_OVERRIDES = {
    "MINDCARE_SPEECH_PROVIDER": ("speech", "provider", str),
    "MINDCARE_WHISPERKIT_PATH": ("speech", "whisperkit_path", str),
    "MINDCARE_WHISPERKIT_MODEL": ("speech", "whisperkit_model", str),
    "MINDCARE_RECONNECT_DELAY": ("speech", "reconnect_delay", float),
    "MINDCARE_MAX_RECONNECTION_ATTEMPTS": ("speech", "max_reconnection_attempts", int),
    "MINDCARE_LANGUAGE_RESTART_DELAY": ("speech", "language_restart_delay", float),
    "MINDCARE_RESPONSE_ENGINE": ("response", "engine", str),
    "MINDCARE_RESPONSE_LATENCY": ("response", "simulated_latency", float),
    "MINDCARE_STORAGE_DIR": ("storage", "directory", str),
    "MINDCARE_METRICS_ENABLED": ("metrics", "enabled", _as_bool),
    "MINDCARE_METRICS_DIR": ("metrics", "directory", str),
    "MINDCARE_LOG_LEVEL": ("logging", "level", str),
    "MINDCARE_LOG_FORMAT": ("logging", "format", str),
    "MINDCARE_LOG_FILE_ENABLED": ("logging", "file_enabled", _as_bool),
    "MINDCARE_LOG_RETENTION_DAYS": ("logging", "retention_days", int),
}

_SECTIONS = ("speech", "response", "storage", "metrics", "logging")


class Settings:
    """Main settings object, built once by the composition root."""

    def __init__(self, config_file: Optional[Union[str, Path]] = None, load_env: bool = True):
        self.config_file = Path(config_file) if config_file else None
        self._lock = threading.RLock()
        self._env_loaded = False

        self.default_language: Language = DEFAULT_LANGUAGE
        self.speech = SpeechSettings()
        self.response = ResponseSettings()
        self.storage = StorageSettings()
        self.metrics = MetricsSettings()
        self.logging = LoggingSettings()

        if load_env:
            self._load_env_file()

        if self.config_file and self.config_file.exists():
            self.load_from_file()

        if load_env:
            self.load_from_env()

    def _load_env_file(self) -> None:
        """Load environment variables from the nearest .env file."""
        if self._env_loaded:
            return
        current_dir = Path.cwd()
        for parent in [current_dir] + list(current_dir.parents):
            env_file = parent / ".env"
            if env_file.exists():
                load_dotenv(env_file)
                logger.debug("Loaded .env file", path=str(env_file))
                break
        self._env_loaded = True

    def _apply_section(self, name: str, values: Dict[str, Any]) -> None:
        section = getattr(self, name)
        known = {f.name for f in fields(section)}
        for key, value in values.items():
            if key in known:
                setattr(section, key, value)
            else:
                logger.warning("Ignoring unknown setting", section=name, key=key)

    def load_from_file(self) -> None:
        """Load settings from the JSON configuration file."""
        if not self.config_file or not self.config_file.exists():
            return

        try:
            with self._lock:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    config = json.load(f)

                if "default_language" in config:
                    self.default_language = Language.parse(config["default_language"])
                for name in _SECTIONS:
                    if name in config:
                        self._apply_section(name, config[name])

                logger.info("Loaded settings from file", file=str(self.config_file))

        except (OSError, json.JSONDecodeError) as e:
            logger.error(
                "Failed to load settings from file", file=str(self.config_file), error=str(e)
            )

    def load_from_env(self) -> None:
        """Override settings from MINDCARE_* environment variables."""
        with self._lock:
            if os.getenv("MINDCARE_DEFAULT_LANGUAGE"):
                self.default_language = Language.parse(os.getenv("MINDCARE_DEFAULT_LANGUAGE"))

            for env_name, (section, key, convert) in _ENV_OVERRIDES.items():
                raw = os.getenv(env_name)
                if not raw:
                    continue
                try:
                    setattr(getattr(self, section), key, convert(raw))
                except ValueError:
                    logger.warning("Invalid environment override", variable=env_name, value=raw)

    def reload(self) -> None:
        """Reload settings from file and environment."""
        with self._lock:
            if self.config_file and self.config_file.exists():
                self.load_from_file()
            self.load_from_env()
            logger.info("Settings reloaded")

    def save_to_file(self, file_path: Optional[Union[str, Path]] = None) -> None:
        """Save current settings to a JSON file."""
        save_path = Path(file_path) if file_path else self.config_file
        if not save_path:
            raise ValueError("No file path provided")

        with self._lock:
            save_path.parent.mkdir(parents=True, exist_ok=True)
            with open(save_path, "w", encoding="utf-8") as f:
                json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
            logger.info("Saved settings to file", file=str(save_path))

    def validate(self) -> list[str]:
        """Validate current settings and return list of issues."""
        issues = []

        if self.speech.reconnect_delay < 0:
            issues.append(f"Invalid reconnect delay: {self.speech.reconnect_delay}")
        if self.speech.language_restart_delay < 0:
            issues.append(f"Invalid language restart delay: {self.speech.language_restart_delay}")
        if self.speech.max_reconnection_attempts < 0:
            issues.append(
                f"Invalid max reconnection attempts: {self.speech.max_reconnection_attempts}"
            )
        if self.response.simulated_latency < 0:
            issues.append(f"Invalid simulated latency: {self.response.simulated_latency}")
        if self.logging.format not in ("json", "dev"):
            issues.append(f"Unknown log format: {self.logging.format}")

        return issues

    def storage_dir(self) -> Path:
        return Path(self.storage.directory).expanduser()

    def metrics_dir(self) -> Path:
        return Path(self.metrics.directory).expanduser()

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary for serialization."""
        data: Dict[str, Any] = {"default_language": self.default_language.value}
        for name in _SECTIONS:
            data[name] = asdict(getattr(self, name))
        return data
