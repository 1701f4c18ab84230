"""
mediaroute.extract - Audio extraction from video byte sources.

Produces a mono, low-sample-rate PCM WAV (16kHz 16-bit by default) sized for
upload to a speech-to-text service.
"""

from __future__ import annotations
