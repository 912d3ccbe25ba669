"""Recognition direction: mute handling and the recognition service."""

from speechrelay.stt.mute import MuteStateMachine
from speechrelay.stt.recognition_service import RecognitionService

__all__ = ["MuteStateMachine", "RecognitionService"]
