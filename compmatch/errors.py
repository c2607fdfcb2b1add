"""Failure taxonomy for the matching pipeline.

Only ``ConfigurationFailure`` and ``BatchTimeoutError`` are meant to reach
the caller of a batch; everything else is absorbed per reference or per
candidate and shows up as a reduced count or a no-match result.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class MatchEngineError(Exception):
    """Base exception for the matching engine."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in sorted(self.context.items()))
        return f"{self.message} ({details})"


class ExtractionFailure(MatchEngineError):
    """A page yielded no usable title or image."""


class BrowserPoolExhausted(ExtractionFailure):
    """No render slot became free within the acquire timeout."""


class DiscoveryFailure(MatchEngineError):
    """Search provider quota, transport or provider-side error."""


class ScoringFailure(MatchEngineError):
    """A visual comparator could not produce a score."""


class BatchTimeoutError(MatchEngineError):
    """The batch deadline expired before every reference finished."""


class ConfigurationFailure(MatchEngineError):
    """Missing or rejected credentials. Fatal for the whole run."""
