"""Tests for event models and the error taxonomy."""

import json

import pytest
from pydantic import ValidationError

from speechrelay.errors import (
    BackendRuntimeError,
    ConfigurationError,
    SpeechRelayError,
    TransientDeliveryError,
    UnknownBackendError,
)
from speechrelay.events.types import (
    MuteState,
    ServiceNotice,
    ServiceState,
    ServiceStatus,
    TextEvent,
    TextEventSource,
    TextEventType,
    state_topic,
)


class TestTextEvent:
    def test_topic_from_enum_source(self):
        event = TextEvent(source=TextEventSource.TRANSLATION, type="final", value="hola")
        assert event.topic == "translation"
        assert event.is_final is True

    def test_topic_from_custom_source(self):
        event = TextEvent(source="subtitles", type="interim", value="x")
        assert event.topic == "subtitles"
        assert event.is_final is False

    def test_is_frozen(self):
        event = TextEvent(source="stt", type="final", value="x")
        with pytest.raises(ValidationError):
            event.value = "changed"

    def test_rejects_unknown_type(self):
        with pytest.raises(ValidationError):
            TextEvent(source="stt", type="partial", value="x")

    def test_json_round_trip(self):
        event = TextEvent(source=TextEventSource.STT, type=TextEventType.FINAL, value="hi")
        data = json.loads(event.model_dump_json())
        assert data == {"source": "stt", "type": "final", "value": "hi"}


class TestServiceModels:
    def test_state_defaults(self):
        state = ServiceState(service="tts")
        assert state.status == ServiceStatus.DISCONNECTED
        assert state.error == ""
        assert state.backend is None
        assert state.muted is None

    def test_state_dump(self):
        state = ServiceState(service="stt", status="connected", muted=MuteState.PENDING_UNMUTE)
        assert state.model_dump(mode="json")["muted"] == "pending_unmute"

    def test_notice_defaults(self):
        notice = ServiceNotice(service="stt", message="boom")
        assert notice.level == "error"
        assert notice.timestamp > 0

    def test_state_topic(self):
        assert state_topic("stt") == "stt.state"


class TestErrors:
    def test_configuration_error_message(self):
        error = ConfigurationError("api_key")
        assert str(error) == "Option 'api_key' is missing"
        assert isinstance(error, SpeechRelayError)

    def test_unknown_backend_error(self):
        error = UnknownBackendError("azure")
        assert str(error) == "Backend 'azure' is unavailable"
        assert error.backend == "azure"
        assert isinstance(error, ConfigurationError)

    def test_backend_runtime_error(self):
        assert str(BackendRuntimeError("piper", "crashed")) == "piper: crashed"

    def test_transient_delivery_error(self):
        cause = ValueError("bad")
        error = TransientDeliveryError("stt", "sub-1", cause)
        assert error.cause is cause
        assert "sub-1" in str(error)
        assert "'stt'" in str(error)
