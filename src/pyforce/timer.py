"""
Frame clocks that drive the simulation.

A clock runs callbacks once per frame. The simulation asks for one frame
at a time and keeps the returned handle so it can cancel the request when
it stops or is torn down.
"""

from __future__ import annotations

from typing import Callable, Optional, Protocol
import asyncio


FrameCallback = Callable[[], None]


class FrameHandle(Protocol):
    """Cancellation handle for a requested frame."""

    def cancel(self) -> None:
        ...


class Clock(Protocol):
    """Anything that can schedule a callback for the next frame."""

    def request_frame(self, callback: FrameCallback) -> FrameHandle:
        ...


class _ManualRequest:
    """Pending frame request on a ManualClock."""

    def __init__(self, callback: FrameCallback):
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """
    Clock advanced explicitly by the caller.

    Callbacks requested during a frame run on the following frame, so no
    two frames ever overlap.
    """

    def __init__(self):
        self._pending: list[_ManualRequest] = []
        self.frame = 0

    def request_frame(self, callback: FrameCallback) -> _ManualRequest:
        request = _ManualRequest(callback)
        self._pending.append(request)
        return request

    @property
    def pending(self) -> int:
        """Number of live (not cancelled) requests."""
        return sum(1 for r in self._pending if not r.cancelled)

    def advance(self, frames: int = 1) -> int:
        """
        Run up to the given number of frames.

        Args:
            frames: Number of frames to run

        Returns:
            Number of frames that ran a callback
        """
        ran = 0
        for _ in range(frames):
            due = [r for r in self._pending if not r.cancelled]
            self._pending = []
            if not due:
                break
            self.frame += 1
            for request in due:
                if not request.cancelled:
                    request.callback()
            ran += 1
        return ran

    def run_until_idle(self, max_frames: int = 10000) -> int:
        """
        Run frames until nothing is pending.

        Args:
            max_frames: Upper bound on frames to run

        Returns:
            Number of frames run
        """
        return self.advance(max_frames)


class AsyncioClock:
    """Clock backed by an asyncio event loop at a fixed frame rate."""

    def __init__(self, fps: float = 60.0, loop: Optional[asyncio.AbstractEventLoop] = None):
        if fps <= 0:
            raise ValueError(f"fps must be positive: {fps}")
        self.interval = 1.0 / fps
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def request_frame(self, callback: FrameCallback) -> asyncio.TimerHandle:
        return self.loop.call_later(self.interval, callback)
