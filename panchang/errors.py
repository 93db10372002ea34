"""Error taxonomy shared by the calculators, the aggregator, the CLI and the API."""
from __future__ import annotations

from typing import Any, Dict, Optional


class PanchangError(Exception):
    """Base error. ``code`` and ``status_code`` drive the HTTP mapping."""

    default_message = "Panchang computation failed"
    default_code = "PANCHANG_ERROR"
    status_code = 500

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, "details": self.details}


class InputError(PanchangError, ValueError):
    """Invalid date, coordinates or timezone."""

    default_message = "Invalid input"
    default_code = "INVALID_INPUT"
    status_code = 400


class ConfigurationError(PanchangError):
    """Unknown ayanamsha or region id."""

    default_message = "Unknown configuration value"
    default_code = "CONFIGURATION_ERROR"
    status_code = 400


class EphemerisUnavailable(PanchangError):
    """The ephemeris provider could not answer (range, missing data, rise/set failure)."""

    default_message = "Ephemeris data unavailable"
    default_code = "EPHEMERIS_UNAVAILABLE"
    status_code = 503


class PartialResult(PanchangError):
    """A batch came back with some days unavailable. ``result`` holds what was computed."""

    default_message = "Some days could not be computed"
    default_code = "PARTIAL_RESULT"
    status_code = 206

    def __init__(self, result, message: Optional[str] = None):
        self.result = result
        failed = [d.isoformat() for d in getattr(result, "failed_dates", ())]
        super().__init__(message, details={"failed_dates": failed})
