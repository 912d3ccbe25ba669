"""Synthesis direction: playback queue and the synthesis service."""

from speechrelay.tts.playback_queue import PlaybackQueue, PlaybackRequest
from speechrelay.tts.synthesis_service import SynthesisService

__all__ = ["PlaybackQueue", "PlaybackRequest", "SynthesisService"]
