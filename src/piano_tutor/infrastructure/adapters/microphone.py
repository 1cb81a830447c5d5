import logging
import threading

import numpy as np

from piano_tutor.domain.constants import RING_BUFFER_SECONDS, SAMPLE_RATE
from piano_tutor.domain.errors import MicrophoneUnavailable
from piano_tutor.domain.interfaces import AudioSource


class MicrophoneSource(AudioSource):
    """
    Adapter for the system microphone via sounddevice (PortAudio).

    The stream callback runs on PortAudio's thread and writes into a ring
    buffer under a lock; ``read_latest`` copies the newest window out. PortAudio
    delivers raw input, with no echo cancellation, noise suppression or gain
    control applied.
    """

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        device: int | str | None = None,
        blocksize: int = 1024,
        buffer_seconds: float = RING_BUFFER_SECONDS,
    ):
        self.logger = logging.getLogger(__name__)
        self._sample_rate = sample_rate
        self._device = device
        self._blocksize = blocksize
        self._ring = np.zeros(max(int(sample_rate * buffer_seconds), blocksize), dtype=np.float32)
        self._write_pos = 0
        self._filled = 0
        self._lock = threading.Lock()
        self._stream = None

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    def open(self) -> None:
        if self._stream is not None:
            return

        # Importing sounddevice raises OSError when the PortAudio library is missing
        try:
            import sounddevice as sd
        except OSError as e:
            raise MicrophoneUnavailable(f"PortAudio is not available: {e}") from e

        try:
            stream = sd.InputStream(
                samplerate=self._sample_rate,
                channels=1,
                dtype="float32",
                device=self._device,
                blocksize=self._blocksize,
                callback=self._on_audio,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            raise MicrophoneUnavailable(f"Cannot open input device {self._device!r}: {e}") from e

        self._reset_buffer()
        self._stream = stream
        self.logger.info(f"Microphone open at {self._sample_rate} Hz (device {self._device!r})")

    def close(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()
            self._reset_buffer()
            self.logger.info("Microphone closed")

    def read_latest(self, frames: int) -> np.ndarray | None:
        size = len(self._ring)
        if frames > size:
            raise ValueError(f"Requested {frames} frames but the buffer holds {size}")
        with self._lock:
            if self._filled < frames:
                return None
            indices = (self._write_pos - frames + np.arange(frames)) % size
            return self._ring[indices].copy()

    def _on_audio(self, indata, frames, time_info, status) -> None:
        if status:
            self.logger.debug(f"Input stream status: {status}")
        self.write(indata[:, 0])

    def write(self, samples: np.ndarray) -> None:
        """Append samples to the ring buffer, overwriting the oldest."""
        size = len(self._ring)
        samples = np.asarray(samples, dtype=np.float32)[-size:]
        count = len(samples)
        with self._lock:
            end = self._write_pos + count
            if end <= size:
                self._ring[self._write_pos : end] = samples
            else:
                split = size - self._write_pos
                self._ring[self._write_pos :] = samples[:split]
                self._ring[: count - split] = samples[split:]
            self._write_pos = end % size
            self._filled = min(self._filled + count, size)

    def _reset_buffer(self) -> None:
        with self._lock:
            self._ring.fill(0.0)
            self._write_pos = 0
            self._filled = 0
