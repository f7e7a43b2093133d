"""Failure kinds surfaced by the marketplace core, each mapped to an HTTP status in main."""


class MarketplaceError(Exception):
    status_code = 500
    kind = "error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class AuthenticationError(MarketplaceError):
    status_code = 401
    kind = "unauthenticated"


class NotFoundError(MarketplaceError):
    status_code = 404
    kind = "not_found"


class PermissionDeniedError(MarketplaceError):
    status_code = 403
    kind = "forbidden"


class StateConflictError(MarketplaceError):
    """Command is not valid for the current lifecycle state. Re-fetch before retrying."""
    status_code = 400
    kind = "state_conflict"


class IntegrityViolationError(MarketplaceError):
    """Duplicate or fraudulent bid. The detail carries the rule's reason string."""
    status_code = 400
    kind = "integrity_violation"


class InvalidPayloadError(MarketplaceError):
    status_code = 400
    kind = "validation"


class ConcurrencyConflictError(MarketplaceError):
    status_code = 409
    kind = "concurrency_conflict"
