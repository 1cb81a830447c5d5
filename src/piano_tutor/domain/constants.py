"""Centralized constants for piano-tutor.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Tuning ----------
A4_FREQUENCY = 440.0
A4_MIDI = 69
SHARP_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]
FLAT_TO_SHARP = {"Db": "C#", "Eb": "D#", "Gb": "F#", "Ab": "G#", "Bb": "A#"}
PIANO_LOWEST_MIDI = 21  # A0
PIANO_HIGHEST_MIDI = 108  # C8

# ---------- Leitner ----------
BOX_COUNT = 5
NEW_CARD_BOX = -1
MAX_BOX = BOX_COUNT - 1

# ---------- Audio input ----------
SAMPLE_RATE = 44100  # Hz
BUFFER_SIZE = 4096  # samples per analysis window
CHORD_BUFFER_SIZE = 8192
RING_BUFFER_SECONDS = 1.0

# ---------- Pitch detection ----------
CLARITY_THRESHOLD = 0.85
MIN_FREQUENCY = 60.0  # ~B1
MAX_FREQUENCY = 4200.0  # ~C8
NOTE_TOLERANCE_SEMITONES = 0.4
MAX_HARMONIC = 8
HARMONIC_BIN_HALF_WIDTH = 2
SILENCE_RMS = 1e-3
NSDF_PEAK_CUTOFF = 0.9

# ---------- Chord detection ----------
MAX_CHORD_NOTES = 6
CHORD_PEAK_RELATIVE_HEIGHT = 0.15
CHORD_HARMONIC_TOLERANCE = 0.03  # fraction of the harmonic frequency

# ---------- Consensus polling ----------
POLL_INTERVAL_MS = 50
NOTE_STABLE_DURATION_MS = 300
NOTE_CONSENSUS = 2
CHORD_STABLE_DURATION_MS = 300
CHORD_CONSENSUS = 3

# ---------- Review session timing ----------
COUNTDOWN_SECONDS = 3
STABILIZATION_MS = 300
FEEDBACK_CORRECT_MS = 1000
FEEDBACK_INCORRECT_MS = 1500
DETECTION_LOOP_GAP_MS = 100

# ---------- Defaults for user settings ----------
DEFAULT_BOX_INTERVALS_MS = (
    1000,  # 1 second
    60 * 1000,  # 1 minute
    60 * 60 * 1000,  # 1 hour
    24 * 60 * 60 * 1000,  # 1 day
    7 * 24 * 60 * 60 * 1000,  # 1 week
)
DEFAULT_HARMONIC_RATIO_THRESHOLD = 0.6
DEFAULT_LOCALE = "no"
SUPPORTED_LOCALES = ("no", "en")
