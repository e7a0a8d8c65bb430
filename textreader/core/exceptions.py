"""Custom exceptions for the application."""

class ApplicationError(Exception):
    """Base application error."""
    pass

class CaptureError(ApplicationError):
    """Camera hardware or encoding errors raised before a frame exists."""
    pass

class DecodeError(ApplicationError):
    """Unsupported or undecodable frame format."""
    pass

class DetectionError(ApplicationError):
    """Object detector failures."""
    pass

class RecognitionError(ApplicationError):
    """Text recognition failed for at least one region."""
    pass

class RecognitionTimeoutError(RecognitionError):
    """Recognition fan-in did not complete in time."""
    pass

class SpeechError(ApplicationError):
    """Speech synthesis errors (never fatal)."""
    pass

class ConfigError(ApplicationError):
    """Configuration-related errors."""
    pass

class ModelError(ApplicationError):
    """Model loading/inference errors."""
    pass
