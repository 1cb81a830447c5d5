"""Domain errors.

Only conditions a caller is expected to handle live here. A tick without a
detected pitch is not an error and is reported as ``None``.
"""


class PianoTutorError(Exception):
    """Base class for errors raised by piano-tutor."""


class InvalidNoteError(PianoTutorError, ValueError):
    """Raised for an unknown pitch-class name or malformed note string.

    This is a programming-level precondition violation; learner input is
    validated before it is ever parsed into a note.
    """


class MicrophoneUnavailable(PianoTutorError):
    """The audio input stream could not be opened (permission denied or no device)."""
