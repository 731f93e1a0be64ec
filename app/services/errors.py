"""
Domain errors surfaced to API callers.
Each carries the HTTP status the API layer answers with; message is safe to show.
"""


class ServiceError(Exception):
    status_code = 500
    kind = "internal_error"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationError(ServiceError):
    status_code = 400
    kind = "validation_error"
    default_message = "Invalid request data"


class Unauthenticated(ServiceError):
    status_code = 401
    kind = "unauthenticated"
    default_message = "Unauthorized"


class EntitlementExhausted(ServiceError):
    status_code = 403
    kind = "entitlement_exhausted"
    default_message = "No credits remaining. Please purchase more to continue."

    TRIAL_MESSAGE = "No free trials remaining. Please upgrade to continue."
    CREDIT_MESSAGE = "No credits remaining. Please purchase more to continue."

    @classmethod
    def for_kind(cls, kind: str) -> "EntitlementExhausted":
        err = cls(cls.TRIAL_MESSAGE if kind == "trial" else cls.CREDIT_MESSAGE)
        err.entitlement_kind = kind
        return err


class NotFound(ServiceError):
    status_code = 404
    kind = "not_found"
    default_message = "Not found"


class RateLimited(ServiceError):
    status_code = 429
    kind = "rate_limited"
    default_message = "Rate limit exceeded. Please try again later."


class ProviderFailure(ServiceError):
    """Provider call failed; the asset is already recorded as failed."""

    status_code = 500
    kind = "provider_failure"
    default_message = "Image generation failed. Please try again."

    def __init__(self, message: str | None = None, asset_id: str | None = None, error_kind: str | None = None) -> None:
        super().__init__(message)
        self.asset_id = asset_id
        self.error_kind = error_kind


class LedgerInconsistency(ServiceError):
    """A debit committed but the work record could not be created (or refunded)."""

    status_code = 500
    kind = "ledger_inconsistency"
    default_message = "Failed to create asset"
