"""
Erreurs métier partagées par les services (cotisations, checkout, contrats).

Chaque erreur porte un message lisible, un code machine et le statut HTTP associé;
app_setup.exception_handlers les traduit en JSON {"error", "code"}.
"""


class DomainError(Exception):
    status_code = 400
    default_code = "error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class ValidationFailed(DomainError):
    status_code = 400
    default_code = "validation_failed"


class NotAuthenticated(DomainError):
    status_code = 401
    default_code = "not_authenticated"


class Forbidden(DomainError):
    status_code = 403
    default_code = "forbidden"


class NotFound(DomainError):
    status_code = 404
    default_code = "not_found"


class InvalidState(DomainError):
    status_code = 400
    default_code = "invalid_state"


class InvalidAmount(DomainError):
    status_code = 400
    default_code = "invalid_amount"


class PaymentBlocked(DomainError):
    status_code = 400
    default_code = "payment_blocked"


class ProviderNotConnected(DomainError):
    status_code = 400
    default_code = "provider_not_connected"


class StoreError(DomainError):
    status_code = 500
    default_code = "store_error"


class ConfigurationError(DomainError):
    status_code = 500
    default_code = "configuration_error"


class UpstreamError(DomainError):
    status_code = 502
    default_code = "upstream_error"
