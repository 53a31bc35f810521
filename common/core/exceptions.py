from typing import Any, Optional


class AppException(Exception):
    """
    Base application exception.

    Subclasses set status_code and error_code so the API layer can render
    them without knowing about individual error types.
    """

    status_code: int = 500
    error_code: str = "app_error"

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
        }


class NotFoundError(AppException):
    """Resource not found exception."""

    status_code = 404
    error_code = "not_found"


class ConfigurationError(AppException):
    """Operator-facing configuration problem (never a user error)."""

    status_code = 500
    error_code = "configuration_error"


class UnknownPlanError(ConfigurationError):
    """Plan id is absent from the loaded catalog."""

    error_code = "unknown_plan"

    def __init__(self, plan_id: str, catalog_version: Optional[int] = None):
        self.plan_id = plan_id
        super().__init__(
            f"Unknown plan '{plan_id}'",
            context={"plan_id": plan_id, "catalog_version": catalog_version},
        )


class ValidationError(AppException):
    """
    Invalid request (user-facing, not retryable).

    allowed_targets lists the plan ids the caller may choose instead.
    """

    status_code = 422
    error_code = "validation_error"

    def __init__(
        self,
        message: str,
        allowed_targets: Optional[dict[str, list[str]]] = None,
        context: Optional[dict[str, Any]] = None,
    ):
        self.allowed_targets = allowed_targets or {}
        super().__init__(message, context=context)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["allowed_targets"] = self.allowed_targets
        return data


class UnsupportedEventError(ValidationError):
    """Provider notification type outside the handled set."""

    error_code = "unsupported_event"


class ConflictError(AppException):
    """Lock busy or concurrent mutation detected. Retryable by the caller."""

    status_code = 409
    error_code = "conflict"

    def __init__(
        self,
        message: str = "A change is already in progress",
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, context=context)


class TransientProviderError(AppException):
    """Provider unreachable or rate limited after bounded retries."""

    status_code = 503
    error_code = "provider_unavailable"
    retry_safe = True

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["retry_safe"] = self.retry_safe
        return data


class ProviderError(AppException):
    """Provider rejected the request (not retryable as-is)."""

    status_code = 502
    error_code = "provider_error"


class DriftError(AppException):
    """Local and provider state diverged in a way that cannot be auto-repaired."""

    status_code = 409
    error_code = "drift_detected"
