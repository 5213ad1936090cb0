"""
Exception taxonomy for the breed identification pipeline.

Fatal errors abort a whole classification request. Enrichment errors are
local to a single retry job and never leave it.
"""

from typing import Optional, Tuple


class BreedIdError(Exception):
    """Base class for all breed_id errors."""


class ConfigError(BreedIdError):
    """Invalid configuration file or value."""


# --- Fatal, whole pipeline ---


class DimensionMismatchError(BreedIdError):
    """Input image does not have the fixed model input size."""

    def __init__(self, expected: Tuple[int, int], actual: Tuple[int, int]):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Image dimensions are incompatible: expected "
            f"{expected[0]}x{expected[1]}, got {actual[0]}x{actual[1]}"
        )


class InferenceError(BreedIdError):
    """The inference model failed or returned an unusable output."""


class LabelMismatchError(BreedIdError):
    """Confidence vector and label tables disagree in length."""

    def __init__(self, vector_length: int, table_length: int):
        self.vector_length = vector_length
        self.table_length = table_length
        super().__init__(
            f"Confidence vector has {vector_length} entries but the label "
            f"table has {table_length}"
        )


# --- Local, per enrichment job ---


class EnrichmentError(BreedIdError):
    """Base class for retry-triggering failures inside an enrichment job."""


class NetworkError(EnrichmentError):
    """Transport failure or non-success HTTP status."""


class ParseError(EnrichmentError):
    """Response body could not be turned into the expected value."""


class RetryExhausted(BreedIdError):
    """A retry job gave up without a successful attempt."""

    def __init__(self, attempts: int, last_error: Optional[BaseException]):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempt(s): {last_error}")


class JobCancelled(BreedIdError):
    """A retry job was cancelled before reaching success or exhaustion."""
