"""Exception hierarchy for entropy-stream.

Running short of entropy is a normal state and is reported as a status
by the consumers, never raised.
"""


class EntropyStreamError(Exception):
    """Base exception for all entropy-stream errors."""


class ConfigValidationError(EntropyStreamError, ValueError):
    """A configuration value cannot be satisfied.

    Out-of-range numbers are clamped instead; this is raised only when no
    clamping makes sense (e.g. minimum chunk >= maximum chunk, unknown
    digest algorithm).
    """


class CaptureError(EntropyStreamError):
    """The sample source failed to open or deliver a frame.

    Surfaced to the caller of the driver; the pipeline does not retry.
    """
