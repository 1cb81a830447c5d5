"""
Signal analysis for pitch and chord detection.

Pure numpy/scipy functions over mono float frames. No I/O and no state: the
detector feeds them the latest window from the audio source.
"""

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from scipy.signal import find_peaks

from piano_tutor.domain.constants import (
    CHORD_HARMONIC_TOLERANCE,
    CHORD_PEAK_RELATIVE_HEIGHT,
    HARMONIC_BIN_HALF_WIDTH,
    MAX_CHORD_NOTES,
    MAX_FREQUENCY,
    MAX_HARMONIC,
    MIN_FREQUENCY,
    NSDF_PEAK_CUTOFF,
)


@dataclass(frozen=True)
class PitchEstimate:
    """
    Fundamental frequency estimate for one frame.

    Attributes:
        frequency: Estimated fundamental in Hz.
        clarity: Height of the chosen NSDF peak, 0..1. Close to 1 for a clean
            periodic tone, low for noise.
    """

    frequency: float
    clarity: float


@dataclass(frozen=True)
class SpectralPeak:
    frequency: float
    magnitude: float


def rms(frame: np.ndarray) -> float:
    if frame.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(frame, dtype=np.float64))))


def _parabolic(values: np.ndarray, index: int) -> tuple[float, float]:
    """Vertex (offset position, height) of the parabola through index-1..index+1."""
    if index <= 0 or index >= len(values) - 1:
        return float(index), float(values[index])
    a, b, c = values[index - 1], values[index], values[index + 1]
    denominator = a - 2 * b + c
    if denominator == 0:
        return float(index), float(b)
    delta = 0.5 * (a - c) / denominator
    return index + delta, float(b - 0.25 * (a - c) * delta)


# ---------- McLeod pitch method ----------


def nsdf(frame: np.ndarray) -> np.ndarray:
    """
    Normalized square difference function for lags 0..len(frame)-1.

    n(t) = 2 r(t) / m(t) where r is the autocorrelation (computed by FFT) and
    m(t) the summed energy of both overlapping segments. Values lie in [-1, 1].
    """
    x = np.asarray(frame, dtype=np.float64)
    x = x - x.mean()
    n = len(x)

    size = 1 << (2 * n - 1).bit_length()
    spectrum = np.fft.rfft(x, size)
    acf = np.fft.irfft(spectrum * np.conj(spectrum), size)[:n]

    cumulative = np.cumsum(x * x)
    total = cumulative[-1]
    m = cumulative[::-1] + (total - np.concatenate(([0.0], cumulative[:-1])))

    result = np.zeros(n)
    valid = m > 0
    result[valid] = 2.0 * acf[valid] / m[valid]
    return result


def key_maxima(values: np.ndarray) -> list[int]:
    """
    Index of the highest point of every positive lobe after the first
    negative-going zero crossing. The lobe around lag 0 is skipped.
    """
    positive = values > 0
    starts = np.flatnonzero(positive[1:] & ~positive[:-1]) + 1
    ends = np.flatnonzero(~positive[1:] & positive[:-1]) + 1

    maxima = []
    for start in starts:
        later = ends[ends > start]
        end = int(later[0]) if later.size else len(values)
        maxima.append(int(start + np.argmax(values[start:end])))
    return maxima


def estimate_pitch(frame: np.ndarray, sample_rate: int, cutoff: float = NSDF_PEAK_CUTOFF) -> PitchEstimate | None:
    """
    McLeod pitch estimate: the first key maximum within ``cutoff`` of the
    highest one, refined by parabolic interpolation.

    Returns None for silent or aperiodic frames.
    """
    if len(frame) < 4 or rms(frame) == 0.0:
        return None

    values = nsdf(frame)[: len(frame) // 2]
    maxima = key_maxima(values)
    if not maxima:
        return None

    highest = max(values[i] for i in maxima)
    if highest <= 0:
        return None

    chosen = next(i for i in maxima if values[i] >= cutoff * highest)
    lag, clarity = _parabolic(values, chosen)
    if lag <= 0:
        return None
    return PitchEstimate(frequency=sample_rate / lag, clarity=float(min(max(clarity, 0.0), 1.0)))


# ---------- Spectral helpers ----------


def power_spectrum(frame: np.ndarray, size: int | None = None) -> np.ndarray:
    windowed = np.asarray(frame, dtype=np.float64) * np.hanning(len(frame))
    return np.abs(np.fft.rfft(windowed, size or len(frame))) ** 2


def harmonic_ratio(
    frame: np.ndarray,
    sample_rate: int,
    fundamentals: float | Sequence[float],
    max_harmonic: int = MAX_HARMONIC,
    half_width: int = HARMONIC_BIN_HALF_WIDTH,
) -> float:
    """
    Fraction of spectral energy within ``half_width`` bins of harmonics
    1..max_harmonic of the given fundamental(s).

    The DC bin is excluded from the total. Tonal piano strikes score high;
    speech and broadband noise score low.
    """
    if isinstance(fundamentals, (int, float)):
        fundamentals = [float(fundamentals)]

    power = power_spectrum(frame)
    total = float(power[1:].sum())
    if total <= 0:
        return 0.0

    bin_hz = sample_rate / len(frame)
    nyquist = sample_rate / 2
    mask = np.zeros(len(power), dtype=bool)
    for f0 in fundamentals:
        if f0 <= 0:
            continue
        for h in range(1, max_harmonic + 1):
            target = h * f0
            if target >= nyquist:
                break
            center = int(round(target / bin_hz))
            mask[max(1, center - half_width) : center + half_width + 1] = True

    return float(power[mask].sum() / total)


def spectral_peaks(
    frame: np.ndarray,
    sample_rate: int,
    relative_height: float = CHORD_PEAK_RELATIVE_HEIGHT,
    min_frequency: float = MIN_FREQUENCY,
    max_frequency: float = MAX_FREQUENCY,
) -> list[SpectralPeak]:
    """
    Magnitude-spectrum peaks above ``relative_height`` of the strongest one,
    ascending by frequency. The frame is zero-padded to twice its length.
    """
    size = 2 * len(frame)
    magnitude = np.sqrt(power_spectrum(frame, size))
    top = magnitude.max(initial=0.0)
    if top <= 0:
        return []

    indices, _ = find_peaks(magnitude, height=relative_height * top)
    bin_hz = sample_rate / size

    peaks = []
    for index in indices:
        position, height = _parabolic(magnitude, int(index))
        frequency = position * bin_hz
        if min_frequency <= frequency <= max_frequency:
            peaks.append(SpectralPeak(frequency=frequency, magnitude=height))
    return peaks


def chord_fundamentals(
    peaks: Sequence[SpectralPeak],
    max_notes: int = MAX_CHORD_NOTES,
    tolerance: float = CHORD_HARMONIC_TOLERANCE,
    max_harmonic: int = MAX_HARMONIC,
) -> list[float]:
    """
    Greedy harmonic suppression.

    Walking upward in frequency, a peak is dropped when it sits within
    ``tolerance`` (relative) of an overtone 2..max_harmonic of a peak already
    accepted. The strongest ``max_notes`` survivors are returned ascending.
    """
    accepted: list[SpectralPeak] = []
    for peak in sorted(peaks, key=lambda p: p.frequency):
        overtone = any(
            abs(peak.frequency / (h * base.frequency) - 1.0) <= tolerance
            for base in accepted
            for h in range(2, max_harmonic + 1)
        )
        if not overtone:
            accepted.append(peak)

    strongest = sorted(accepted, key=lambda p: p.magnitude, reverse=True)[:max_notes]
    return sorted(p.frequency for p in strongest)
