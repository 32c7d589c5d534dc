"""
Playback controller interface.

Video transport is external; the session only reads the current frame and
asks for seeks and single-frame steps.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


class PlaybackController(ABC):
    """Current frame plus seek/step commands."""

    @property
    @abstractmethod
    def frame(self) -> int:
        pass

    @abstractmethod
    def seek(self, frame: int) -> None:
        pass

    @abstractmethod
    def next_frame(self) -> None:
        pass


class FrameCursor(PlaybackController):
    """
    In-memory playback position.

    Frames are clamped to [0, max_frame]; max_frame None means unbounded.
    """

    def __init__(self, frame: int = 0, max_frame: Optional[int] = None):
        self.max_frame = max_frame
        self._frame = self._clamp(frame)

    def _clamp(self, frame: int) -> int:
        frame = max(0, int(frame))
        if self.max_frame is not None:
            frame = min(frame, self.max_frame)
        return frame

    @property
    def frame(self) -> int:
        return self._frame

    def seek(self, frame: int) -> None:
        self._frame = self._clamp(frame)

    def next_frame(self) -> None:
        self._frame = self._clamp(self._frame + 1)
