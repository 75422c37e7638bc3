"""
Analytics Error Taxonomy

Every failure the pipeline reports carries a machine-readable kind and a
human-readable message. Row-level data problems are never raised; they are
counted by the normalizer.
"""

from enum import Enum
from typing import Dict


class ErrorKind(str, Enum):
    """Machine-readable error kinds"""
    INSUFFICIENT_DATA = "insufficient_data"
    INVALID_DATA_FORMAT = "invalid_data_format"
    UNSUPPORTED_DATA_TYPE = "unsupported_data_type"
    CONFIGURATION_ERROR = "configuration_error"


class AnalyticsError(Exception):
    """Base class for classified pipeline failures"""

    kind: ErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, str]:
        return {"kind": self.kind.value, "message": self.message}


class InsufficientData(AnalyticsError):
    """Fewer observations than a module needs"""
    kind = ErrorKind.INSUFFICIENT_DATA


class InvalidDataFormat(AnalyticsError):
    """Input is structurally unusable or too many records were rejected"""
    kind = ErrorKind.INVALID_DATA_FORMAT


class UnsupportedDataType(AnalyticsError):
    """Requested processing mode is not implemented"""
    kind = ErrorKind.UNSUPPORTED_DATA_TYPE


class ConfigurationError(AnalyticsError):
    """Pipeline option outside its valid range"""
    kind = ErrorKind.CONFIGURATION_ERROR


def require_observations(count: int, minimum: int, subject: str) -> None:
    """Raise InsufficientData when fewer than ``minimum`` observations exist."""
    if count < minimum:
        raise InsufficientData(
            f"Not enough {subject} to generate insights: "
            f"{count} available, at least {minimum} required."
        )
