"""Pydantic settings models for the recognition, synthesis and webhook services.

Values that fail validation fall back to the field default instead of
rejecting the whole document, so a settings file written by an older or
newer version still loads.
"""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
)

from speechrelay.config import SETTINGS_PATH, WEBHOOK_DEFAULT_USERNAME
from speechrelay.events.types import TextEventSource

logger = logging.getLogger(__name__)


class _SafeModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @field_validator("*", mode="wrap")
    @classmethod
    def _fallback_to_default(
        cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo
    ) -> Any:
        try:
            return handler(value)
        except ValidationError:
            if info.context and info.context.get("strict"):
                raise
            logger.warning(
                "Invalid value for %s.%s: %r; using default",
                cls.__name__,
                info.field_name,
                value,
            )
            field = cls.model_fields[info.field_name]
            return field.get_default(call_default_factory=True)


class ServiceSettings(_SafeModel):
    """Settings shared by the recognition and synthesis services."""

    backend: str = ""
    auto_start: bool = False
    stop_with_stream: bool = False
    replace_words: dict[str, str] = Field(default_factory=dict)
    replace_words_ignore_case: bool = False
    replace_words_preserve_case: bool = False
    # Per-backend option records, keyed by backend identifier.
    options: dict[str, dict[str, Any]] = Field(default_factory=dict)

    def options_for(self, backend: str) -> dict[str, Any]:
        return dict(self.options.get(backend, {}))


class RecognitionSettings(ServiceSettings):
    backend: str = "process"


class SynthesisSettings(ServiceSettings):
    backend: str = "command"
    source: str = TextEventSource.STT.value
    input_field: bool = False


class WebhookSettings(_SafeModel):
    enabled: bool = False
    url: str = ""
    source: str = TextEventSource.STT.value
    input_field: bool = False
    username: str = WEBHOOK_DEFAULT_USERNAME
    avatar_url: str = ""


class RelaySettings(_SafeModel):
    """Top-level settings document."""

    stt: RecognitionSettings = Field(default_factory=RecognitionSettings)
    tts: SynthesisSettings = Field(default_factory=SynthesisSettings)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)


def load_settings(path: Path | None = None) -> RelaySettings:
    """Load settings from a JSON file; a missing or unreadable file gives defaults."""
    path = path or SETTINGS_PATH
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.info("No settings file at %s; using defaults", path)
        return RelaySettings()
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Could not read settings file %s: %s", path, exc)
        return RelaySettings()

    if not isinstance(raw, dict):
        logger.warning("Settings file %s is not a JSON object; using defaults", path)
        return RelaySettings()
    return RelaySettings.model_validate(raw)


def merge_settings(settings: ServiceSettings, changes: dict[str, Any]) -> ServiceSettings:
    """Return a validated copy of *settings* with *changes* applied.

    Unlike loading a settings file, an invalid value here is rejected rather
    than replaced by the field default.

    Raises:
        ValueError: a key is unknown or a value fails validation.
    """
    unknown = set(changes) - set(type(settings).model_fields)
    if unknown:
        raise ValueError(f"Unknown setting(s): {', '.join(sorted(unknown))}")
    data = settings.model_dump()
    data.update(changes)
    try:
        return type(settings).model_validate(data, context={"strict": True})
    except ValidationError as exc:
        fields = sorted({str(err["loc"][0]) for err in exc.errors() if err["loc"]})
        raise ValueError(f"Invalid setting(s): {', '.join(fields)}") from exc
