"""Static registry mapping backend identifiers to backend constructors.

Each entry carries the pydantic model of the backend's option record and the
options that must be non-empty. Options are validated here, before a backend
is ever constructed, so a misconfigured backend never sees a ``start`` call.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from speechrelay.errors import ConfigurationError, UnknownBackendError

logger = logging.getLogger(__name__)

B = TypeVar("B")


def is_empty_value(value: Any) -> bool:
    """None, blank strings and empty containers count as missing."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (dict, list, tuple, set)):
        return len(value) == 0
    return False


@dataclass(frozen=True)
class BackendDescriptor(Generic[B]):
    """How to build and configure one backend."""

    identifier: str
    factory: Callable[[Any], B]
    config_model: type[BaseModel] | None = None
    required: tuple[str, ...] = ()
    description: str = ""

    def validate(self, options: Mapping[str, Any] | None) -> Any:
        """Validate raw *options* and return the backend's config object.

        Raises:
            ConfigurationError: a required option is missing or an option
                has a value of the wrong type.
        """
        options = dict(options or {})
        if self.config_model is None:
            config: Any = options
        else:
            try:
                config = self.config_model.model_validate(options)
            except ValidationError as exc:
                loc = exc.errors()[0]["loc"]
                field = str(loc[0]) if loc else self.identifier
                raise ConfigurationError(field, f"Option '{field}' is invalid") from exc

        for field in self.required:
            value = getattr(config, field, None) if self.config_model else config.get(field)
            if is_empty_value(value):
                raise ConfigurationError(field)
        return config

    def create(self, receiver: Any) -> B:
        return self.factory(receiver)


class BackendRegistry(Generic[B]):
    """Identifier to :class:`BackendDescriptor` mapping for one direction."""

    def __init__(self, direction: str, descriptors: Iterable[BackendDescriptor[B]] = ()) -> None:
        self.direction = direction
        self._descriptors: dict[str, BackendDescriptor[B]] = {}
        for descriptor in descriptors:
            self._descriptors[descriptor.identifier] = descriptor

    def resolve(self, identifier: str | None) -> BackendDescriptor[B]:
        """Return the descriptor for *identifier*.

        Raises:
            UnknownBackendError: no backend is registered under *identifier*.
        """
        descriptor = self._descriptors.get(identifier or "")
        if descriptor is None:
            logger.warning("No %s backend registered as %r", self.direction, identifier)
            raise UnknownBackendError(identifier or "")
        return descriptor

    @property
    def identifiers(self) -> list[str]:
        return list(self._descriptors)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._descriptors

    def __iter__(self):
        return iter(self._descriptors.values())


def default_recognition_registry() -> BackendRegistry:
    """Registry of the recognition backends shipped with speechrelay."""
    from speechrelay.backends.process_stt import (
        ProcessRecognitionBackend,
        ProcessRecognitionConfig,
    )

    return BackendRegistry(
        "recognition",
        [
            BackendDescriptor(
                identifier="process",
                factory=ProcessRecognitionBackend,
                config_model=ProcessRecognitionConfig,
                required=("exe_location",),
                description="Local recognizer executable streaming interim/final lines",
            ),
        ],
    )


def default_synthesis_registry() -> BackendRegistry:
    """Registry of the synthesis backends shipped with speechrelay."""
    from speechrelay.backends.command_tts import (
        CommandSynthesisBackend,
        CommandSynthesisConfig,
    )

    return BackendRegistry(
        "synthesis",
        [
            BackendDescriptor(
                identifier="command",
                factory=CommandSynthesisBackend,
                config_model=CommandSynthesisConfig,
                required=("exe_location",),
                description="Local executable invoked once per utterance",
            ),
        ],
    )
