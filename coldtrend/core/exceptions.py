# coldtrend/core/exceptions.py
from __future__ import annotations


class CoreError(Exception):
    """Base error for all core-domain exceptions."""


# ---- Validation / construction errors ----
class InvalidTimeSeries(CoreError):
    """Raised when a TimeSeries is constructed with invalid inputs."""


class InvalidSegment(CoreError):
    """Raised when a Segment / SegmentTimeline is constructed with invalid inputs."""


class InvalidReading(CoreError):
    """Raised when a Reading cannot be built from the given values."""


class InvalidConfig(CoreError):
    """Raised when an EngineConfig is constructed with invalid inputs."""


class InvalidSelection(CoreError):
    """Raised when a selection holds too little data for the requested edit."""


# ---- Lookup errors (also behave like KeyError for dict-like APIs) ----
class SegmentNotFound(CoreError, KeyError):
    """Raised when a requested segment id is not present."""


class UnknownCurveFamily(CoreError, KeyError):
    """Raised when a curve family tag is not registered."""


# ---- Collaborator failures ----
class PersistenceError(CoreError):
    """Reported per device when the series store fails to save."""

    default_message = "save failed, please retry"

    def __init__(self, device_id: str, message: str | None = None) -> None:
        self.device_id = device_id
        self.message = message or self.default_message
        super().__init__(f"{device_id}: {self.message}")
