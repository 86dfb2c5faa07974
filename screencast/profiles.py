#!/usr/bin/env python3
"""Static quality profiles for the H.264/AAC encoder."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping

from screencast.errors import ConfigurationError


@dataclass(frozen=True)
class QualityProfile:
    """Encoder parameters for one quality level."""

    name: str
    frame_rate: int
    compression_factor: int  # x264 CRF
    encoder_preset: str
    audio_bitrate: str
    max_video_rate: str
    buffer_size: str

    @property
    def keyframe_interval(self) -> int:
        # Two seconds per GOP
        return self.frame_rate * 2


PROFILES: Mapping[str, QualityProfile] = {
    "professional": QualityProfile(
        name="professional",
        frame_rate=60,
        compression_factor=18,
        encoder_preset="medium",
        audio_bitrate="192k",
        max_video_rate="8M",
        buffer_size="16M",
    ),
    "light": QualityProfile(
        name="light",
        frame_rate=30,
        compression_factor=26,
        encoder_preset="veryfast",
        audio_bitrate="128k",
        max_video_rate="2500k",
        buffer_size="5000k",
    ),
}

PROFILE_ALIASES: Dict[str, str] = {
    "youtube": "professional",
    "q1": "professional",
    "q2": "light",
}


def get_profile(name: str) -> QualityProfile:
    """Look up a quality profile by name or alias.

    Raises:
        ConfigurationError: If the name is unknown.
    """
    key = name.strip().lower()
    key = PROFILE_ALIASES.get(key, key)
    try:
        return PROFILES[key]
    except KeyError:
        known = ", ".join(sorted(set(PROFILES) | set(PROFILE_ALIASES)))
        raise ConfigurationError(f"Unknown quality profile '{name}' (known: {known})") from None
