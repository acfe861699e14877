"""
Discord voice backend for clip playback.
Streams the clip window into the guild's voice channel through FFmpeg.
"""
import asyncio
import logging
from typing import Callable, Optional

import discord

from .playback import AudioPlayer, PlaybackError


logger = logging.getLogger(__name__)

NOT_CONNECTED_MESSAGE = "Join a voice channel to hear the clip."
LOAD_FAILED_MESSAGE = "Failed to load audio. Please try again."


class _PrimedAudioSource(discord.AudioSource):
    """Replays the frame read while waiting for readiness, then defers to the FFmpeg source."""

    def __init__(self, source: discord.AudioSource, first_frame: bytes):
        self._source = source
        self._first_frame: Optional[bytes] = first_frame

    def read(self) -> bytes:
        if self._first_frame is not None:
            frame, self._first_frame = self._first_frame, None
            return frame
        if self._source is None:
            return b""
        return self._source.read()

    def is_opus(self) -> bool:
        return self._source is not None and self._source.is_opus()

    def cleanup(self) -> None:
        # AudioSource.__del__ calls cleanup() again on garbage collection
        source, self._source = self._source, None
        if source is not None:
            source.cleanup()


class DiscordVoicePlayer(AudioPlayer):
    """AudioPlayer that plays into whatever voice client the provider returns."""

    def __init__(self, voice_client_provider: Callable[[], Optional[discord.VoiceClient]]):
        """
        Args:
            voice_client_provider: Returns the guild's current voice client, or None
        """
        self._voice_client_provider = voice_client_provider
        self._voice_client: Optional[discord.VoiceClient] = None
        self._source: Optional[discord.AudioSource] = None

    async def prepare(self, audio_ref: str, start_offset: float) -> None:
        voice_client = self._voice_client_provider()
        if voice_client is None or not voice_client.is_connected():
            raise PlaybackError(NOT_CONNECTED_MESSAGE)

        self.stop()
        try:
            source = discord.FFmpegPCMAudio(
                audio_ref,
                before_options=f"-ss {start_offset:.3f}",
                options="-vn"
            )
        except discord.ClientException as e:
            logger.error(f"FFmpeg unavailable for {audio_ref}: {e}")
            raise PlaybackError(LOAD_FAILED_MESSAGE) from e

        # The first decoded frame proves the media is reachable and decodable
        loop = asyncio.get_running_loop()
        try:
            first_frame = await loop.run_in_executor(None, source.read)
        except asyncio.CancelledError:
            source.cleanup()
            raise
        except Exception as e:
            source.cleanup()
            raise PlaybackError(LOAD_FAILED_MESSAGE) from e

        if not first_frame:
            source.cleanup()
            logger.error(f"No audio decoded from {audio_ref}")
            raise PlaybackError(LOAD_FAILED_MESSAGE)

        self._voice_client = voice_client
        self._source = _PrimedAudioSource(source, first_frame)

    def play(self) -> None:
        if self._source is None or self._voice_client is None:
            raise PlaybackError(LOAD_FAILED_MESSAGE)
        if self._voice_client.is_playing():
            self._voice_client.stop()
        try:
            self._voice_client.play(self._source, after=self._after_playback)
        except discord.ClientException as e:
            raise PlaybackError(NOT_CONNECTED_MESSAGE) from e

    def stop(self) -> None:
        voice_client, source = self._voice_client, self._source
        self._source = None
        if voice_client is not None and (voice_client.is_playing() or voice_client.is_paused()):
            # The voice client cleans up the source it was playing
            voice_client.stop()
        elif source is not None:
            source.cleanup()

    @staticmethod
    def _after_playback(error: Optional[Exception]) -> None:
        # Runs on the voice client's player thread
        if error is not None:
            logger.error(f"Voice playback ended with error: {error}")
