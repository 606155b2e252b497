"""Provider registry for dynamic provider loading."""

from typing import Any, Callable, Dict, Optional, Type, TYPE_CHECKING

import structlog

from .ai.base import ResponseEngine
from .stt.base import SpeechCapability

if TYPE_CHECKING:
    from ..config.settings import Settings


logger = structlog.get_logger()

ConfigGetter = Callable[["Settings"], Dict[str, Any]]


class ProviderRegistry:
    """Registry for managing provider implementations."""

    def __init__(self):
        self._response_engines: Dict[str, Type[ResponseEngine]] = {}
        self._speech_capabilities: Dict[str, Type[SpeechCapability]] = {}
        self._provider_configs: Dict[str, ConfigGetter] = {}

    def register_response_engine(
        self,
        name: str,
        provider_class: Type[ResponseEngine],
        config_getter: Optional[ConfigGetter] = None,
    ) -> None:
        """Register a response engine."""
        self._response_engines[name] = provider_class
        if config_getter:
            self._provider_configs[f"engine:{name}"] = config_getter
        logger.debug(
            "Registered response engine", name=name, class_name=provider_class.__name__
        )

    def register_speech_capability(
        self,
        name: str,
        provider_class: Type[SpeechCapability],
        config_getter: Optional[ConfigGetter] = None,
    ) -> None:
        """Register a speech capability."""
        self._speech_capabilities[name] = provider_class
        if config_getter:
            self._provider_configs[f"speech:{name}"] = config_getter
        logger.debug(
            "Registered speech capability", name=name, class_name=provider_class.__name__
        )

    def _build_kwargs(
        self, config_key: str, settings: Optional["Settings"], kwargs: Dict[str, Any]
    ) -> Dict[str, Any]:
        options: Dict[str, Any] = {}
        if settings is not None and config_key in self._provider_configs:
            options.update(self._provider_configs[config_key](settings))
        # Explicit keyword arguments win over settings
        options.update(kwargs)
        return options

    def get_response_engine(
        self, name: str, settings: Optional["Settings"] = None, **kwargs
    ) -> ResponseEngine:
        """Get a response engine instance."""
        if name not in self._response_engines:
            raise ValueError(f"Unknown response engine: {name}")
        options = self._build_kwargs(f"engine:{name}", settings, kwargs)
        return self._response_engines[name](**options)

    def speech_capability_class(self, name: str) -> Type[SpeechCapability]:
        if name not in self._speech_capabilities:
            raise ValueError(f"Unknown speech capability: {name}")
        return self._speech_capabilities[name]

    def speech_capability_factory(
        self, name: str, settings: Optional["Settings"] = None, **kwargs
    ) -> Callable[[], SpeechCapability]:
        """Return a zero-argument factory, suitable for probe_capability()."""
        provider_class = self.speech_capability_class(name)
        options = self._build_kwargs(f"speech:{name}", settings, kwargs)

        def factory() -> SpeechCapability:
            return provider_class(**options)

        factory.provider_class = provider_class  # type: ignore[attr-defined]
        return factory

    def list_response_engines(self) -> list[str]:
        """List available response engines."""
        return list(self._response_engines.keys())

    def list_speech_capabilities(self) -> list[str]:
        """List available speech capabilities."""
        return list(self._speech_capabilities.keys())

    def clear(self) -> None:
        """Clear all registered providers."""
        self._response_engines.clear()
        self._speech_capabilities.clear()
        self._provider_configs.clear()


# Global registry instance
registry = ProviderRegistry()
