"""
Error classes for training and serving cascade classifiers.

Every error carries a message, structured data and an optional cause, and
logs itself when constructed. Recoverable conditions (insufficient data,
solver failures) log at WARNING; everything else logs at ERROR.
"""

import logging
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


class CascadeClassifierError(Exception):
    """
    Base error class for all package errors.

    Automatically logs the error with its structured data when raised.
    """

    log_level = logging.ERROR

    def __init__(
        self,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        """
        Initialize error with structured context.

        Args:
            message: Human-readable error message
            data: Structured data describing the failure
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.data = data or {}
        self.cause = cause

        self._log_error()

    def _log_error(self):
        """Log error with structured data."""
        log_data = {"error_type": self.__class__.__name__, **self.data}
        if self.cause:
            log_data["cause"] = str(self.cause)

        logger.log(self.log_level, "%s %s", self.message, log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "data": self.data,
            "cause": str(self.cause) if self.cause else None,
        }


# Data errors
class InvalidData(CascadeClassifierError):
    """Example sets, feature values or derived statistics are unusable."""
    pass


# Parameter errors
class InvalidParameters(CascadeClassifierError):
    """Fitted or loaded parameters violate their invariants."""
    pass


class InvalidState(InvalidParameters):
    """A loaded classifier cannot produce a valid probability."""
    pass


class ConfigurationError(CascadeClassifierError):
    """Configuration values are out of range or inconsistent."""
    pass


# Recoverable errors
class InsufficientTrainingData(CascadeClassifierError):
    """Too few examples of a class to train the kernel classifier."""
    log_level = logging.WARNING


class PredictionFailure(CascadeClassifierError):
    """The kernel classifier solver failed while training or predicting."""
    log_level = logging.WARNING


# Persistence errors
class StateLoadFailure(CascadeClassifierError):
    """Persisted classifier state is missing or malformed."""
    pass
