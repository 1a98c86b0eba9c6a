"""
SHOTCOACH Analysis Service - Errors

Strategy failures are recoverable: the processing router catches any of
these and walks the fallback chain. Only AnalysisExhaustedError reaches
callers.
"""

from typing import List, Optional


class AnalysisError(Exception):
    """Base class for analysis strategy failures."""


class ModelLoadError(AnalysisError):
    """A pose/ML model could not be loaded."""


class PoseDetectionError(AnalysisError):
    """No usable keypoints (empty sequence, low confidence, missing joints)."""


class InvalidVideoError(AnalysisError):
    """Video cannot be opened or fails the tier's minimum quality."""


class TierUnavailableError(AnalysisError):
    """The tier has no implementation of its own."""


class StrategyTimeoutError(AnalysisError):
    """A strategy did not finish within the configured timeout."""


class AnalysisExhaustedError(AnalysisError):
    """Every tier in the fallback chain failed, including basic."""
    
    def __init__(self, attempted_tiers: List[str], last_error: Optional[BaseException] = None):
        self.attempted_tiers = attempted_tiers
        self.last_error = last_error
        tiers = " -> ".join(attempted_tiers)
        super().__init__(f"Video analysis failed after trying {tiers}: {last_error}")
