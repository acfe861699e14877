"""
Playback timer for Tune Trivia.
Plays a bounded clip window through an audio backend and stops it automatically.
"""
import asyncio
import itertools
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

# Set up logger for playback operations
logger = logging.getLogger(__name__)


class PlaybackError(Exception):
    """Raised when a clip cannot be played (media not ready in time or decode failure)."""
    pass


class AudioPlayer(ABC):
    """Backend that actually produces sound for a clip."""

    @abstractmethod
    async def prepare(self, audio_ref: str, start_offset: float) -> None:
        """Load the media and position it at start_offset; return once ready to play."""

    @abstractmethod
    def play(self) -> None:
        """Begin playback of the prepared media."""

    @abstractmethod
    def stop(self) -> None:
        """Stop playback and release the prepared media. Must be safe to call when idle."""


@dataclass(frozen=True)
class PlaybackHandle:
    """Identifies one scheduled clip playback."""
    token: int
    question_index: int
    audio_ref: str
    start_offset: float
    end_offset: float

    @property
    def duration(self) -> float:
        return self.end_offset - self.start_offset


class PlaybackLifecycleLogger:
    """Structured logging for playback lifecycle events."""

    @staticmethod
    def log_playback_requested(handle: PlaybackHandle) -> None:
        logger.info(
            f"Playback lifecycle: REQUESTED - Question {handle.question_index}, "
            f"Window {handle.start_offset:.1f}s-{handle.end_offset:.1f}s",
            extra={
                'event_type': 'playback_requested',
                'question_index': handle.question_index,
                'token': handle.token,
                'audio_ref': handle.audio_ref,
                'duration': handle.duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_media_ready(handle: PlaybackHandle, wait_started: float) -> None:
        ready_duration = time.time() - wait_started
        logger.debug(
            f"Playback lifecycle: MEDIA_READY - Question {handle.question_index}, Wait {ready_duration:.3f}s",
            extra={
                'event_type': 'playback_media_ready',
                'question_index': handle.question_index,
                'token': handle.token,
                'ready_duration': ready_duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_playback_completion(handle: PlaybackHandle, completion_type: str) -> None:
        """Log playback completion (natural expiry or cancellation)."""
        logger.info(
            f"Playback lifecycle: COMPLETED - Question {handle.question_index}, Type {completion_type}",
            extra={
                'event_type': 'playback_completed',
                'question_index': handle.question_index,
                'token': handle.token,
                'completion_type': completion_type,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_playback_error(handle: PlaybackHandle, error_type: str, error_message: str) -> None:
        logger.error(
            f"Playback lifecycle: ERROR - Question {handle.question_index}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'playback_error',
                'question_index': handle.question_index,
                'token': handle.token,
                'error_type': error_type,
                'error_message': error_message,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_overlap_detected(active_token: int, new_token: int) -> None:
        logger.warning(
            f"Playback lifecycle: OVERLAP - Stopping playback {active_token} before starting {new_token}",
            extra={
                'event_type': 'playback_overlap',
                'active_token': active_token,
                'new_token': new_token,
                'timestamp': time.time()
            }
        )


class PlaybackTimer:
    """Plays one clip window at a time and stops it when the window has elapsed."""

    def __init__(self, player: AudioPlayer, media_ready_timeout: float = 5.0):
        """
        Initialize the playback timer.

        Args:
            player: Audio backend used for every clip
            media_ready_timeout: Seconds to wait for the backend to become ready
        """
        self.player = player
        self.media_ready_timeout = media_ready_timeout
        self._tasks: Dict[int, asyncio.Task] = {}  # Token -> playback task
        self._tokens = itertools.count(1)

    def start(
        self,
        audio_ref: str,
        start_offset: float,
        end_offset: float,
        question_index: int = 0,
        on_finished: Optional[Callable[[PlaybackHandle], Any]] = None,
        on_failed: Optional[Callable[[PlaybackHandle, PlaybackError], Any]] = None
    ) -> PlaybackHandle:
        """
        Schedule playback of a clip window on the running event loop.

        Args:
            audio_ref: URL of the audio source
            start_offset: Clip start in seconds
            end_offset: Clip end in seconds, must be greater than start_offset
            question_index: Index of the question the clip belongs to
            on_finished: Called with the handle once the window has elapsed
            on_failed: Called with the handle and a PlaybackError if the clip cannot play

        Returns:
            Handle identifying the scheduled playback

        Raises:
            ValueError: If the clip window is empty or inverted
            RuntimeError: If no event loop is running
        """
        if end_offset <= start_offset:
            raise ValueError(f"Clip end ({end_offset}) must be greater than start ({start_offset})")

        loop = asyncio.get_running_loop()
        handle = PlaybackHandle(
            token=next(self._tokens),
            question_index=question_index,
            audio_ref=audio_ref,
            start_offset=start_offset,
            end_offset=end_offset
        )

        # The backend plays one clip at a time
        for active_token in list(self._tasks):
            PlaybackLifecycleLogger.log_overlap_detected(active_token, handle.token)
            self._cancel_task(active_token)

        PlaybackLifecycleLogger.log_playback_requested(handle)
        self._tasks[handle.token] = loop.create_task(self._run(handle, on_finished, on_failed))
        return handle

    async def _run(self, handle: PlaybackHandle, on_finished, on_failed) -> None:
        try:
            wait_started = time.time()
            try:
                await asyncio.wait_for(
                    self.player.prepare(handle.audio_ref, handle.start_offset),
                    timeout=self.media_ready_timeout
                )
                PlaybackLifecycleLogger.log_media_ready(handle, wait_started)
                self.player.play()
            except asyncio.TimeoutError as e:
                raise PlaybackError("Audio took too long to load. Please try again.") from e
            except PlaybackError:
                raise
            except Exception as e:
                raise PlaybackError(f"Failed to load audio: {e}") from e

            await asyncio.sleep(handle.duration)

            self.player.stop()
            self._tasks.pop(handle.token, None)
            PlaybackLifecycleLogger.log_playback_completion(handle, "natural_expiry")
            self._notify(on_finished, handle)

        except asyncio.CancelledError:
            PlaybackLifecycleLogger.log_playback_completion(handle, "cancelled")
            raise
        except PlaybackError as e:
            PlaybackLifecycleLogger.log_playback_error(handle, type(e.__cause__ or e).__name__, str(e))
            self._tasks.pop(handle.token, None)
            self.player.stop()
            self._notify(on_failed, handle, e)

    @staticmethod
    def _notify(callback, *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Playback callback raised")

    def _cancel_task(self, token: int) -> bool:
        task = self._tasks.pop(token, None)
        if task is None:
            return False
        if not task.done():
            task.cancel()
        self.player.stop()
        return True

    def stop(self, handle: Optional[PlaybackHandle]) -> bool:
        """
        Stop a playback early.

        Args:
            handle: Handle returned by start()

        Returns:
            True if an active playback was stopped, False if the handle was stale or finished
        """
        if handle is None:
            return False
        stopped = self._cancel_task(handle.token)
        if not stopped:
            logger.debug(f"No active playback for token {handle.token}")
        return stopped

    def stop_all(self) -> int:
        """Stop every outstanding playback; used on teardown."""
        tokens = list(self._tasks)
        for token in tokens:
            self._cancel_task(token)
        if tokens:
            logger.info(f"Stopped {len(tokens)} outstanding playback(s)")
        return len(tokens)

    def is_active(self, handle: Optional[PlaybackHandle]) -> bool:
        if handle is None:
            return False
        task = self._tasks.get(handle.token)
        return task is not None and not task.done()

    @property
    def active_count(self) -> int:
        return len(self._tasks)
