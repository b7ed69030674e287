# core/errors.py

"""
Exception taxonomy for the duplicate check pipeline.

Only HashingError is meant to reach the caller of the decision engine;
the rest are absorbed and logged at the engine or store boundary.
"""

from typing import List


class DuplicateCheckError(Exception):
    """Base class for all pipeline errors"""


class HashingError(DuplicateCheckError):
    """SHA-256 could not be computed (input is not a byte buffer)"""


class DecodeError(DuplicateCheckError):
    """Image bytes could not be decoded for perceptual hashing"""


class ComparisonDegraded(DuplicateCheckError):
    """Two hashes of different length were compared"""

    def __init__(self, length_a: int, length_b: int):
        self.length_a = length_a
        self.length_b = length_b
        super().__init__(
            f"Hash length mismatch: {length_a} vs {length_b} characters"
        )


class JudgeUnavailable(DuplicateCheckError):
    """The external vision model failed, timed out or broke the JSON contract"""


class ConfigurationError(DuplicateCheckError):
    """Required configuration (usually a credential) is missing"""


class BatchLimitExceeded(DuplicateCheckError):
    """A batch request would exceed the configured image or call budget"""

    def __init__(self, requested: int, limit: int, what: str = "AI calls"):
        self.requested = requested
        self.limit = limit
        super().__init__(
            f"Batch would need {requested} {what}, limit is {limit}"
        )


class ValidationError(DuplicateCheckError):
    """Upload bytes rejected by input validation"""


class StorageError(DuplicateCheckError):
    """Every configured content store backend failed"""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("All content store backends failed: " + "; ".join(self.errors))
