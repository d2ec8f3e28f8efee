"""
Microphone capture and audio analysis.

CaptureDevice wraps a single sounddevice input stream and hands back the
recording as WAV bytes. silence_ratio() measures how much of a payload is
near-silence so the retry engine can skip pointless API calls.
"""

import asyncio
import io
import threading
from typing import List, Optional

import numpy as np
import soundfile as sf

from .errors import CaptureError
from .types import AudioPayload


DEFAULT_BLOCKSIZE = 1024
WAV_MIME_TYPE = "audio/wav"


def encode_wav(audio: np.ndarray, sample_rate: int) -> bytes:
    """Convert float32 mono audio to 16-bit PCM WAV bytes."""
    audio_int16 = (np.clip(audio, -1.0, 1.0) * 32767).astype(np.int16)
    buffer = io.BytesIO()
    sf.write(buffer, audio_int16, sample_rate, format="WAV", subtype="PCM_16")
    return buffer.getvalue()


def silence_ratio(payload: AudioPayload, frame_ms: float = 100, rms_threshold: float = 0.01) -> float:
    """
    Fraction of frames whose RMS amplitude is below rms_threshold.

    Returns 0.0 when the payload can't be decoded, so an unreadable
    recording is still sent to the endpoint rather than dropped.
    """
    try:
        audio, sample_rate = sf.read(io.BytesIO(payload.data), dtype="float32")
    except (RuntimeError, ValueError, TypeError) as e:
        print(f"[Audio] Silence check skipped, could not decode payload: {e}")
        return 0.0

    if audio.ndim > 1:
        audio = np.mean(audio, axis=1)

    frame_size = max(1, int(sample_rate * frame_ms / 1000))
    total_frames = 0
    silent_frames = 0

    for start in range(0, len(audio), frame_size):
        frame = audio[start:start + frame_size]
        rms = float(np.sqrt(np.mean(frame ** 2)))
        if rms < rms_threshold:
            silent_frames += 1
        total_frames += 1

    if total_frames == 0:
        return 1.0
    return silent_frames / total_frames


class CaptureDevice:
    """
    Records one microphone between start() and stop().

    The sounddevice callback runs on the PortAudio thread and only appends
    blocks under a lock; everything else happens on the event loop.

    Usage:
        device = CaptureDevice(sample_rate=16000)
        if await device.request_permission():
            await device.start()
            ...
            payload = await device.stop()
    """

    def __init__(self, sample_rate: int = 16000, device_name: str = ""):
        self.sample_rate = sample_rate
        self.device_name = device_name

        self._stream = None
        self._blocks: List[np.ndarray] = []
        self._lock = threading.Lock()

        # Serializes start/stop/release; each start() gets a new generation
        self._ops = asyncio.Lock()
        self._generation = 0

    @property
    def is_capturing(self) -> bool:
        return self._stream is not None

    async def request_permission(self) -> bool:
        """True if an input device can be opened."""
        return await asyncio.to_thread(self._has_input_device)

    async def start(self) -> int:
        """
        Open and start the input stream. Stops a capture that is still running first.

        Returns a generation token identifying this capture for release().
        """
        async with self._ops:
            if self._stream is not None:
                print("[Audio] Capture already running, stopping previous recording")
                await self._stop_current()
            await asyncio.to_thread(self._open_stream)
            self._generation += 1
            return self._generation

    async def stop(self) -> AudioPayload:
        """Stop the stream and return everything recorded since start()."""
        async with self._ops:
            return await self._stop_current()

    async def release(self, generation: int) -> bool:
        """
        Close the capture opened by the start() that returned generation.

        Does nothing if a later start() has replaced it or it is already
        stopped. Returns True if a stream was closed.
        """
        async with self._ops:
            if self._stream is None or generation != self._generation:
                return False
            await asyncio.to_thread(self._close_stream)
            print(f"[Audio] Released orphaned capture #{generation}")
            return True

    async def _stop_current(self) -> AudioPayload:
        if self._stream is None:
            raise CaptureError("No recording in progress")
        audio = await asyncio.to_thread(self._close_stream)
        duration_ms = len(audio) / self.sample_rate * 1000
        data = encode_wav(audio, self.sample_rate) if len(audio) else b""
        print(f"[Audio] Captured {duration_ms / 1000:.2f}s ({len(data) // 1024}KB)")
        return AudioPayload(data=data, mime_type=WAV_MIME_TYPE, duration_ms=duration_ms)

    def _has_input_device(self) -> bool:
        import sounddevice as sd

        try:
            return self._find_device(sd) is not None or bool(sd.query_devices(kind="input"))
        except Exception as e:
            print(f"[Audio] No usable input device: {e}")
            return False

    def _find_device(self, sd) -> Optional[int]:
        """Find configured device index by name (substring match)."""
        if not self.device_name:
            return None

        wanted = self.device_name.lower()
        for i, d in enumerate(sd.query_devices()):
            if d["max_input_channels"] > 0 and wanted in d["name"].lower():
                return i
        return None

    def _open_stream(self) -> None:
        import sounddevice as sd

        with self._lock:
            self._blocks = []

        try:
            stream = sd.InputStream(
                device=self._find_device(sd),
                samplerate=self.sample_rate,
                channels=1,
                dtype=np.float32,
                blocksize=DEFAULT_BLOCKSIZE,
                callback=self._audio_callback,
            )
            stream.start()
        except Exception as e:
            raise CaptureError(f"Mikrofon konnte nicht gestartet werden: {e}") from e

        self._stream = stream

    def _close_stream(self) -> np.ndarray:
        stream, self._stream = self._stream, None
        try:
            stream.stop()
            stream.close()
        except Exception as e:
            print(f"[Audio] Error closing stream: {e}")

        with self._lock:
            blocks, self._blocks = self._blocks, []

        if not blocks:
            return np.array([], dtype=np.float32)
        return np.concatenate(blocks)

    def _audio_callback(self, indata, frames, time_info, status) -> None:
        if status:
            print(f"[Audio] Callback status: {status}")
        with self._lock:
            self._blocks.append(indata.copy().flatten())
