"""
mediaroute - Speech-audio triage for video files.

Skims a video to decide whether it carries usable speech and which downstream
pipeline is cheapest: audio transcription, visual frame sampling, or a hybrid
of both. When audio is chosen, produces a compact mono 16kHz WAV for upload to
a transcription service.
"""

__version__ = "0.1.0"
