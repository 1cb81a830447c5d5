import numpy as np
import pytest
from fakes import tone

from piano_tutor.application.audio.analysis import (
    SpectralPeak,
    chord_fundamentals,
    estimate_pitch,
    harmonic_ratio,
    key_maxima,
    nsdf,
    rms,
    spectral_peaks,
)
from piano_tutor.domain.constants import SAMPLE_RATE

A4 = 440.0
C4 = 261.6256


def test_rms():
    assert rms(np.zeros(10)) == 0.0
    assert rms(np.array([])) == 0.0
    assert rms(np.ones(16) * 0.5) == pytest.approx(0.5)


def test_nsdf_starts_at_one_and_is_bounded():
    values = nsdf(tone([A4], n=2048))[:1024]
    assert values[0] == pytest.approx(1.0)
    assert np.all(values <= 1.0 + 1e-9)
    assert np.all(values >= -1.0 - 1e-9)


def test_key_maxima_skips_zero_lag_lobe():
    values = np.array([1.0, 0.5, -0.2, -0.1, 0.3, 0.8, 0.4, -0.3, 0.2, 0.1])
    assert key_maxima(values) == [5, 8]


@pytest.mark.parametrize("frequency", [A4, C4, 110.0, 1046.5])
def test_estimate_pitch_on_sine(frequency):
    estimate = estimate_pitch(tone([frequency], n=4096), SAMPLE_RATE)
    assert estimate is not None
    assert estimate.frequency == pytest.approx(frequency, rel=0.005)
    assert estimate.clarity > 0.9


def test_estimate_pitch_with_overtones():
    estimate = estimate_pitch(tone([C4], n=4096, partials=(1.0, 0.5, 0.25)), SAMPLE_RATE)
    assert estimate.frequency == pytest.approx(C4, rel=0.005)


def test_estimate_pitch_silence():
    assert estimate_pitch(np.zeros(4096), SAMPLE_RATE) is None


def test_estimate_pitch_noise_has_low_clarity():
    noise = np.random.default_rng(7).normal(0, 0.3, 4096)
    estimate = estimate_pitch(noise, SAMPLE_RATE)
    assert estimate is None or estimate.clarity < 0.85


def test_harmonic_ratio_tone_vs_noise():
    assert harmonic_ratio(tone([A4], n=4096), SAMPLE_RATE, A4) > 0.9
    noise = np.random.default_rng(3).normal(0, 0.3, 4096)
    assert harmonic_ratio(noise, SAMPLE_RATE, A4) < 0.3


def test_harmonic_ratio_wrong_fundamental():
    assert harmonic_ratio(tone([A4], n=4096), SAMPLE_RATE, 300.0) < 0.1


def test_harmonic_ratio_of_silence():
    assert harmonic_ratio(np.zeros(4096), SAMPLE_RATE, A4) == 0.0


def test_harmonic_ratio_several_fundamentals():
    frame = tone([C4, 329.63, 392.0])
    assert harmonic_ratio(frame, SAMPLE_RATE, [C4]) < 0.5
    assert harmonic_ratio(frame, SAMPLE_RATE, [C4, 329.63, 392.0]) > 0.9


def test_spectral_peaks_of_triad():
    peaks = spectral_peaks(tone([C4, 329.63, 392.0]), SAMPLE_RATE)
    assert [p.frequency for p in peaks] == [
        pytest.approx(C4, rel=0.003),
        pytest.approx(329.63, rel=0.003),
        pytest.approx(392.0, rel=0.003),
    ]


def test_spectral_peaks_of_silence():
    assert spectral_peaks(np.zeros(8192), SAMPLE_RATE) == []


def test_chord_fundamentals_suppresses_overtones():
    peaks = [
        SpectralPeak(220.0, 1.0),
        SpectralPeak(277.2, 0.8),
        SpectralPeak(440.5, 0.6),
        SpectralPeak(660.0, 0.5),
        SpectralPeak(831.6, 0.3),
    ]
    assert chord_fundamentals(peaks) == [220.0, 277.2]


def test_chord_fundamentals_keeps_strongest():
    peaks = [SpectralPeak(100.0 + 37 * i, float(i)) for i in range(8)]
    result = chord_fundamentals(peaks, max_notes=3, max_harmonic=1)
    assert result == [100.0 + 37 * 5, 100.0 + 37 * 6, 100.0 + 37 * 7]
