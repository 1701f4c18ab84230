"""
mediaroute.analyze - Speech presence analysis and pipeline routing.

Detects the audio track, samples loudness at a few positions, classifies
silence adaptively and recommends the audio, hybrid or visual pipeline.
"""

from __future__ import annotations
