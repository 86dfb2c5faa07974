#!/usr/bin/env python3
"""Environment settings and output file naming.

Environment variables:
    SCREENCAST_OUTDIR   Output directory (default: ~/Videos)
    SCREENCAST_LOG      Session log path (default: $XDG_RUNTIME_DIR/screencast.log)
    DISPLAY             X11 display (default: :0)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional

from screencast.types import PROG_NAME


@dataclass(frozen=True)
class Settings:
    """Paths and display name resolved from the environment."""

    output_dir: Path
    log_path: Path
    display_name: str

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        home = env.get("HOME") or str(Path.home())
        output_dir = Path(env.get("SCREENCAST_OUTDIR") or os.path.join(home, "Videos"))
        run_dir = env.get("XDG_RUNTIME_DIR") or "/tmp"
        log_path = Path(env.get("SCREENCAST_LOG") or os.path.join(run_dir, f"{PROG_NAME}.log"))
        display_name = env.get("DISPLAY") or ":0"
        return cls(output_dir=output_dir, log_path=log_path, display_name=display_name)


def output_path_for(
    output_dir: Path,
    tag: str,
    profile: str,
    has_audio: bool,
    now: Optional[datetime] = None,
) -> Path:
    """Build the default output path for a session.

    Example:
        ~/Videos/screencast_2024-05-01_142233_full_light_audio.mp4
    """
    stamp = (now or datetime.now()).strftime("%Y-%m-%d_%H%M%S")
    audio_tag = "audio" if has_audio else "mute"
    return Path(output_dir) / f"{PROG_NAME}_{stamp}_{tag}_{profile}_{audio_tag}.mp4"
