from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from piano_tutor.domain.errors import MicrophoneUnavailable
from piano_tutor.infrastructure.adapters.microphone import MicrophoneSource


@pytest.fixture
def fake_sd():
    module = MagicMock()
    module.PortAudioError = type("PortAudioError", (Exception,), {})
    with patch.dict("sys.modules", {"sounddevice": module}):
        yield module


@pytest.fixture
def small_source():
    # 10-sample ring buffer
    return MicrophoneSource(sample_rate=10, blocksize=4, buffer_seconds=1.0)


def test_open_starts_input_stream(fake_sd):
    source = MicrophoneSource(sample_rate=48000, device=2)
    source.open()

    kwargs = fake_sd.InputStream.call_args.kwargs
    assert kwargs["samplerate"] == 48000
    assert kwargs["channels"] == 1
    assert kwargs["device"] == 2
    fake_sd.InputStream.return_value.start.assert_called_once()
    assert source.is_open


def test_open_twice_is_noop(fake_sd):
    source = MicrophoneSource()
    source.open()
    source.open()
    assert fake_sd.InputStream.call_count == 1


def test_open_failure(fake_sd):
    fake_sd.InputStream.side_effect = fake_sd.PortAudioError("Error querying device -1")
    source = MicrophoneSource()

    with pytest.raises(MicrophoneUnavailable, match="Error querying device"):
        source.open()
    assert not source.is_open


def test_close_is_idempotent(fake_sd):
    source = MicrophoneSource()
    source.open()
    stream = fake_sd.InputStream.return_value

    source.close()
    source.close()

    stream.stop.assert_called_once()
    stream.close.assert_called_once()
    assert not source.is_open


def test_read_before_buffer_fills(small_source):
    assert small_source.read_latest(4) is None
    small_source.write(np.ones(3))
    assert small_source.read_latest(4) is None


def test_read_latest_window(small_source):
    small_source.write(np.arange(6))
    np.testing.assert_array_equal(small_source.read_latest(4), [2, 3, 4, 5])


def test_ring_buffer_wraps(small_source):
    small_source.write(np.arange(6))
    small_source.write(np.arange(6, 12))
    np.testing.assert_array_equal(small_source.read_latest(10), np.arange(2, 12))


def test_oversized_write_keeps_newest(small_source):
    small_source.write(np.arange(25))
    np.testing.assert_array_equal(small_source.read_latest(3), [22, 23, 24])


def test_read_more_than_buffer(small_source):
    with pytest.raises(ValueError):
        small_source.read_latest(11)


def test_stream_callback_takes_first_channel(small_source):
    block = np.stack([np.arange(4), -np.arange(4)], axis=1).astype(np.float32)
    small_source._on_audio(block, 4, None, None)
    np.testing.assert_array_equal(small_source.read_latest(4), [0, 1, 2, 3])


def test_close_clears_buffer(fake_sd, small_source):
    small_source.open()
    small_source.write(np.arange(10))
    small_source.close()
    assert small_source.read_latest(4) is None
