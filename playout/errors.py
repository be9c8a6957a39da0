from enum import Enum


class StreamOutcome(Enum):
    """How a single element's encode ended when it did not fail."""

    COMPLETED = "completed"
    CANCELLED = "cancelled"


class StreamingFailure(Exception):
    """ffmpeg could not be launched or exited abnormally."""


class ProbeFailure(Exception):
    """Duration lookup failed (bad index, unreachable source, bad ffprobe output)."""


class ElementError(ValueError):
    """A playlist element description could not be understood."""
