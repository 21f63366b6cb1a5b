"""
Custom exception hierarchy for the Experience Aggregator.

All application errors inherit from ExperienceAggregatorError so the web
boundary can map them to a status code in one place.

Exception Hierarchy:
    ExperienceAggregatorError (base)
    ├── ValidationError
    ├── ResourceNotFoundError
    ├── ExternalServiceError
    │   └── ProviderError
    └── CatalogUnavailableError

Provider failures are raised inside adapters only to be caught by the
aggregator; they never reach a caller. CatalogUnavailableError is the one
infrastructure failure that does, since the local catalog is the system of
record.

Usage:
    from exceptions import ValidationError

    raise ValidationError("start_date must not be after end_date",
                          detail={"start_date": "2026-10-20"})
"""

from typing import Optional, Dict, Any


class ExperienceAggregatorError(Exception):
    """
    Base exception for all Experience Aggregator errors.

    Attributes:
        message: Human-readable error message
        detail: Optional dict with additional error context
        status_code: Suggested HTTP status code (for API errors)
    """

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for JSON serialization."""
        result = {
            "error": self.__class__.__name__,
            "message": self.message,
        }
        if self.detail:
            result["detail"] = self.detail
        return result


class ValidationError(ExperienceAggregatorError):
    """
    Raised when caller input is missing or malformed.

    Examples:
        raise ValidationError("Experience ID and date are required")
        raise ValidationError("Invalid date", detail={"field": "date"})
    """

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, status_code=400)


class ResourceNotFoundError(ExperienceAggregatorError):
    """
    Raised when a requested experience doesn't exist in any source.

    Examples:
        raise ResourceNotFoundError("Experience not found", detail={"id": "501"})
    """

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, status_code=404)


class ExternalServiceError(ExperienceAggregatorError):
    """
    Base exception for external service failures.
    """

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[Dict[str, Any]] = None,
        service_name: Optional[str] = None,
    ):
        if service_name and detail is None:
            detail = {"service": service_name}
        elif service_name and detail:
            detail["service"] = service_name

        super().__init__(message, detail=detail, status_code=502)


class ProviderError(ExternalServiceError):
    """
    Raised by a provider adapter when its upstream fails.

    Examples:
        raise ProviderError("Upstream returned 500", provider="heavenly_tours")
    """

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[Dict[str, Any]] = None,
        provider: Optional[str] = None,
    ):
        if provider and detail is None:
            detail = {"provider": provider}
        elif provider and detail:
            detail["provider"] = provider

        super().__init__(message, detail=detail, service_name="experience_provider")


class CatalogUnavailableError(ExperienceAggregatorError):
    """
    Raised when the local catalog store cannot be reached.

    Examples:
        raise CatalogUnavailableError("Catalog query failed", detail={"operation": "list"})
    """

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, status_code=503)
