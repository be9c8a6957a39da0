#!/usr/bin/env python3
"""
Composite PlayerState assembled from smaller mixins.

Each mixin covers one concern of the scheduler (playlist store, duration
probing, the ffmpeg supervisor, control operations, the player loop); they
all share the state and the single lock set up by BaseState.
"""

from .base_state import BaseState
from .logging_mixin import LoggingMixin
from .durations_mixin import DurationsMixin
from .encoder_mixin import EncoderMixin
from .playlist_mixin import PlaylistMixin
from .control_mixin import ControlMixin
from .loop_mixin import LoopMixin


class PlayerState(
    BaseState,
    LoggingMixin,
    DurationsMixin,
    EncoderMixin,
    PlaylistMixin,
    ControlMixin,
    LoopMixin,
):
    """Playlist, streaming loop and live controls for one RTMP broadcast."""


def build_player_state(**overrides) -> PlayerState:
    """Build a scheduler from the environment-driven defaults in config.py."""
    return PlayerState(**overrides)
