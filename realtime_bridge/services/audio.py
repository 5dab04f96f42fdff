"""
Local audio for the realtime session: microphone capture and speaker playback.

The microphone is exposed as an aiortc ``MediaStreamTrack`` producing 20 ms
frames of 48 kHz mono signed 16-bit audio. Muting keeps reading the device but
sends silence, so the outgoing RTP stream stays continuous.
"""

import asyncio
import fractions
import logging
from typing import Optional

import av
import numpy as np
from aiortc import MediaStreamTrack
from aiortc.mediastreams import MediaStreamError

from realtime_bridge.errors import MediaError
from realtime_bridge.config.constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

# Audio parameters
SAMPLE_RATE = 48000
CHANNELS = 1
CHUNK = 960  # 20ms at 48kHz


def _require_pyaudio():
    try:
        import pyaudio
    except ImportError as e:
        raise MediaError("PyAudio is required for local audio (pip install pyaudio)") from e
    return pyaudio


class MicrophoneStreamTrack(MediaStreamTrack):
    """MediaStreamTrack that captures audio from microphone."""

    kind = "audio"

    def __init__(self, device_index: Optional[int] = None):
        super().__init__()
        pyaudio = _require_pyaudio()
        self.enabled = True
        self.timestamp = 0
        self.p = pyaudio.PyAudio()
        try:
            self.stream = self.p.open(
                format=pyaudio.paInt16,
                channels=CHANNELS,
                rate=SAMPLE_RATE,
                input=True,
                frames_per_buffer=CHUNK,
                input_device_index=device_index,
            )
        except (OSError, ValueError) as e:
            self.p.terminate()
            self.p = None
            raise MediaError(f"Could not open microphone: {e}") from e
        logger.info(f"Microphone initialized: {SAMPLE_RATE}Hz, {CHANNELS} channel(s)")

    async def recv(self):
        """Get frame from microphone (silence while disabled)."""
        if self.readyState != "live" or self.stream is None:
            raise MediaStreamError

        try:
            data = await asyncio.to_thread(self.stream.read, CHUNK, exception_on_overflow=False)
        except OSError as e:
            logger.warning(f"Microphone read failed: {e}")
            raise MediaStreamError from e

        if self.enabled:
            samples = np.frombuffer(data, np.int16)
        else:
            samples = np.zeros(CHUNK * CHANNELS, dtype=np.int16)

        frame = av.AudioFrame.from_ndarray(
            samples.reshape(1, -1),
            format="s16",
            layout="mono" if CHANNELS == 1 else "stereo"
        )
        frame.sample_rate = SAMPLE_RATE
        frame.pts = self.timestamp
        frame.time_base = fractions.Fraction(1, SAMPLE_RATE)
        self.timestamp += CHUNK
        return frame

    def stop(self):
        """Stop the microphone stream and release the device."""
        super().stop()
        stream, self.stream = self.stream, None
        p, self.p = self.p, None
        if stream:
            stream.stop_stream()
            stream.close()
        if p:
            p.terminate()
        logger.info("Microphone stopped")


def open_microphone(device_index: Optional[int] = None) -> MicrophoneStreamTrack:
    """
    Open the local microphone.

    Raises:
        MediaError: If PyAudio is missing or the capture device cannot be opened
    """
    try:
        return MicrophoneStreamTrack(device_index)
    except MediaError:
        raise
    except Exception as e:
        raise MediaError(f"Could not start audio capture: {e}") from e


class SpeakerSink:
    """Plays a remote audio track on the default output device."""

    def __init__(self):
        self._task: Optional[asyncio.Task] = None
        self._p = None
        self._stream = None

    def start(self, track: MediaStreamTrack) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = asyncio.ensure_future(self._play(track))

    async def _play(self, track: MediaStreamTrack) -> None:
        try:
            pyaudio = _require_pyaudio()
            self._p = pyaudio.PyAudio()
            self._stream = self._p.open(
                format=pyaudio.paInt16,
                channels=CHANNELS,
                rate=SAMPLE_RATE,
                output=True,
                frames_per_buffer=CHUNK,
            )
        except (MediaError, OSError) as e:
            logger.error(f"Remote audio playback unavailable: {e}")
            self._close_stream()
            return

        resampler = av.AudioResampler(format="s16", layout="mono", rate=SAMPLE_RATE)
        logger.info("Playing remote audio")
        try:
            while True:
                frame = await track.recv()
                for out in resampler.resample(frame):
                    await asyncio.to_thread(self._stream.write, out.to_ndarray().tobytes())
        except MediaStreamError:
            logger.info("Remote audio track ended")
        finally:
            self._close_stream()

    def _close_stream(self) -> None:
        stream, self._stream = self._stream, None
        p, self._p = self._p, None
        if stream:
            stream.stop_stream()
            stream.close()
        if p:
            p.terminate()

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._close_stream()
