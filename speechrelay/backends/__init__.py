"""Backend capability interfaces, registry and the bundled adapters."""

from speechrelay.backends.base import (
    RecognitionBackend,
    RecognitionReceiver,
    SynthesisBackend,
    SynthesisReceiver,
)
from speechrelay.backends.registry import (
    BackendDescriptor,
    BackendRegistry,
    default_recognition_registry,
    default_synthesis_registry,
)

__all__ = [
    "BackendDescriptor",
    "BackendRegistry",
    "RecognitionBackend",
    "RecognitionReceiver",
    "SynthesisBackend",
    "SynthesisReceiver",
    "default_recognition_registry",
    "default_synthesis_registry",
]
