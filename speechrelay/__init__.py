"""speechrelay: real-time speech-event pipeline.

Turns recognition activity from a swappable backend into normalized text
events, applies mute and word-replacement rules, and fans the result out to
captions, integrations and synthesis engines over a shared text event bus.
"""

__version__ = "0.1.0"
