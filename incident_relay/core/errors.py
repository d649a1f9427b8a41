class AppError(Exception):
    """Base class for all application errors."""

    status_code = 500
    code = "internal_error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class InvalidRequestError(AppError):
    """Client sent a malformed or invalid request (400)."""

    status_code = 400
    code = "invalid_request"


class NotFoundError(AppError):
    """Requested resource does not exist (404)."""

    status_code = 404
    code = "not_found"


class RequestTooLargeError(AppError):
    """Request body exceeds the configured limit (413)."""

    status_code = 413
    code = "request_too_large"


class RateLimitError(AppError):
    """Client has exceeded rate limits (429)."""

    status_code = 429
    code = "rate_limit_exceeded"


class ConfigurationError(AppError):
    """Server misconfiguration (500)."""

    status_code = 500
    code = "configuration_error"


class ExternalServiceError(AppError):
    """Upstream service failed or returned an invalid response (502)."""

    status_code = 502
    code = "external_service_error"


class NotReadyError(AppError):
    """Service is temporarily unavailable (503)."""

    status_code = 503
    code = "not_ready"


# ---------------------------------------------------------------------------
# Summary engine errors
# ---------------------------------------------------------------------------
class UnknownSystemError(InvalidRequestError):
    """The system key is not present in the registry."""

    code = "unknown_system"

    def __init__(self, system_key: str) -> None:
        super().__init__(f"Unknown system key: {system_key!r}.")
        self.system_key = system_key


class TranscriptionError(InvalidRequestError):
    """Audio could not be turned into text."""

    code = "transcription_failed"


class ProviderError(ExternalServiceError):
    """A completion backend call failed.

    ``transient`` marks failures worth retrying (timeouts, connection errors,
    5xx and rate-limit responses). Everything else is permanent.
    """

    code = "provider_error"

    def __init__(self, detail: str, *, transient: bool, status_code: int | None = None) -> None:
        super().__init__(detail)
        self.transient = transient
        self.upstream_status = status_code


class SummarizationError(ExternalServiceError):
    """The summary could not be produced; no state was changed."""

    code = "summarization_failed"


class DeliveryError(ExternalServiceError):
    """Webhook delivery failed. Logged only, never surfaced to uploaders."""

    code = "delivery_failed"
