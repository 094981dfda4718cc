"""Custom exception classes for the locale engine."""
from typing import Any, Dict, Optional


class LocaleEngineError(Exception):
    """Base exception for all locale engine errors."""

    error_type = "locale_engine_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        """Structured form attached to pipeline results and analytics events."""
        data: Dict[str, Any] = {"type": self.error_type, "message": self.message}
        data.update(self.details)
        return data


class ConfigurationError(LocaleEngineError):
    """Raised when there's a configuration error."""
    error_type = "configuration_error"


class InvalidLocaleFormatError(LocaleEngineError):
    """Raised when a token does not match the locale code grammar."""
    error_type = "invalid_language"


class UnsupportedLocaleError(LocaleEngineError):
    """Raised when a well-formed locale code is not in the supported set."""
    error_type = "unsupported_language"


class ProtectedRouteDeniedError(LocaleEngineError):
    """Raised when the caller lacks the permissions a protected route requires."""
    error_type = "protected_route_access"


class StorageTierUnavailableError(LocaleEngineError):
    """Raised when a storage tier fails its capability probe."""
    error_type = "storage_tier_unavailable"


class RedirectLoopDetectedError(LocaleEngineError):
    """Raised when the same redirect repeats too often within the loop window."""
    error_type = "redirect_loop"


class PipelineExecutionError(LocaleEngineError):
    """Raised when a pipeline stage fails and the pipeline runs in strict mode."""
    error_type = "execution_error"


class AnalyticsDeliveryError(LocaleEngineError):
    """Raised when an analytics sink rejects a batch."""
    error_type = "analytics_delivery_error"
