"""Natural-language time, date-of-birth and appointment date normalization."""

from .date_formatter import describe_relative_time, format_appointment_datetime
from .dob_normalizer import normalize_dob
from .models import Confidence, NormalizedDateTime, NormalizedDOB, TimeOfDay
from .time_normalizer import parse_natural_time

__all__ = [
    "Confidence",
    "NormalizedDOB",
    "NormalizedDateTime",
    "TimeOfDay",
    "describe_relative_time",
    "format_appointment_datetime",
    "normalize_dob",
    "parse_natural_time",
]
