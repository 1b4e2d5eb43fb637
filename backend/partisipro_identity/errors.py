"""
Domain Errors — the failure taxonomy raised by the identity/claims services.

Services raise these; the FastAPI app maps them to HTTP responses through a
single exception handler (see main.py). ``status_code`` is only consulted at
that boundary.
"""


class IdentityRegistryError(Exception):
    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(IdentityRegistryError):
    """Malformed input, e.g. an expiry that is not after issuance."""
    status_code = 400
    error_code = "VALIDATION_ERROR"


class NotFoundError(IdentityRegistryError):
    """A referenced identity, claim, issuer or topic does not exist."""
    status_code = 404
    error_code = "NOT_FOUND"


class ConflictError(IdentityRegistryError):
    """Duplicate registration."""
    status_code = 409
    error_code = "CONFLICT"


class UnauthorizedIssuerError(IdentityRegistryError):
    """The issuer is not active or not authorized for the claim topic."""
    status_code = 403
    error_code = "UNAUTHORIZED_ISSUER"


class InvalidStateError(IdentityRegistryError):
    """The operation is illegal for the entity's current status."""
    status_code = 409
    error_code = "INVALID_STATE"
