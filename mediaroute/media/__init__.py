"""
mediaroute.media - Media loading.

Opens a video byte source as a seekable decode session without decoding the
whole file. The FFmpeg backend is the default.
"""

from __future__ import annotations
