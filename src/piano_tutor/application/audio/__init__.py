# Application Audio Package
from .pitch_detector import DetectorState, PitchDetector

__all__ = ["DetectorState", "PitchDetector"]
