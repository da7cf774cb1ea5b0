# playback.py
"""
Play / pause / restart state for the main loop.

Pausing is simply not ticking the simulation; the state here only tells the
loop whether to tick and how much to scale the frame delta.
"""
from constants import MAX_DELTA_TIME, MIN_DELTA_TIME, MIN_PLAYBACK_SPEED


class PlaybackState:
    def __init__(self, speed: float = 1.0):
        self.is_playing = True
        self.speed = float(speed)

    def play(self) -> None:
        self.is_playing = True

    def pause(self) -> None:
        self.is_playing = False

    def toggle(self) -> None:
        self.is_playing = not self.is_playing

    def restart(self) -> None:
        self.is_playing = True

    def scaled_delta(self, raw_delta: float, time_scale: float = 1.0) -> float:
        """
        Clamps a wall-clock frame delta into the sane integration range and
        applies the playback speed. Returns 0.0 while paused.
        """
        if not self.is_playing:
            return 0.0
        dt = min(MAX_DELTA_TIME, max(MIN_DELTA_TIME, raw_delta))
        return dt * max(MIN_PLAYBACK_SPEED, self.speed) * time_scale

    def __repr__(self) -> str:
        return f"PlaybackState(is_playing={self.is_playing}, speed={self.speed})"
