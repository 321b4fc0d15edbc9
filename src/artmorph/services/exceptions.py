"""Service error hierarchy for the generation job pipeline.

This module defines the exception hierarchy for service-level errors:
- ServiceError: Base for all service errors, carries an HTTP-style status code
- Job errors: raised synchronously by JobService, expected and user-actionable
- ProviderError: Classified image-generation backend failures, recorded on the job
- StorageError: Object storage failures
"""


class ServiceError(Exception):
    """Base exception for all service errors."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# Boundary / validation errors (raised by JobService, surfaced verbatim)
class UnauthorizedError(ServiceError):
    """Caller has no authenticated identity."""

    status_code = 401


class NotFoundError(ServiceError):
    """Job, input image, style or profile missing or not owned by the caller."""

    status_code = 404


class QuotaExceededError(ServiceError):
    """Non-dev-mode user reached the free generation limit."""

    status_code = 403

    def __init__(self, limit: int):
        super().__init__(
            f"Free limit reached ({limit} generations). "
            "Activate Developer Mode for unlimited access."
        )
        self.limit = limit


class InvalidStateError(ServiceError):
    """Operation attempted on a job in the wrong status."""

    status_code = 400


class RetryLimitExceededError(ServiceError):
    """Job already used all of its retries."""

    status_code = 400


class InvalidInputError(ServiceError):
    """Request parameters failed validation (e.g. prompt too long)."""

    status_code = 400


# Image generation provider errors
class ProviderError(ServiceError):
    """Base exception for classified provider failures."""

    status_code = 502

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class ProviderTimeoutError(ProviderError):
    """Generation exceeded the provider's time budget."""

    status_code = 504


class ProviderBusyError(ProviderError):
    """Provider signaled queue or capacity exhaustion (429, 503, full queue)."""

    status_code = 503


class ProviderPermissionDeniedError(ProviderError):
    """Provider requires a license acceptance, gated access or valid credentials."""

    status_code = 403


class ProviderFailureError(ProviderError):
    """Any other upstream failure (network, malformed response, non-2xx)."""

    status_code = 502


# Object storage errors
class StorageError(ServiceError):
    """Upload, download, signing or deletion in object storage failed."""

    status_code = 500
