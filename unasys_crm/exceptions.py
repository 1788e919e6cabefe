"""
Custom exceptions for the CRM client.

This module centralizes all custom exceptions used throughout the application
to provide consistent error handling and user-friendly messages.
"""

from __future__ import annotations

from typing import Any, Optional


# =============================================================================
# BASE EXCEPTIONS
# =============================================================================

class CRMException(Exception):
    """Base exception for all CRM-specific errors."""

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        self.code = code or "CRM_ERROR"
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class ConfigurationError(CRMException):
    """Raised when required settings are missing."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(
            f"Variables d'environnement manquantes: {', '.join(missing)}",
            code="CONFIG_ERROR",
        )


# =============================================================================
# BACKEND EXCEPTIONS
# =============================================================================

class BackendError(CRMException):
    """Raised when the hosted backend answers with an error."""

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[str] = None,
        hint: Optional[str] = None,
    ):
        self.status = status
        self.backend_code = code
        self.details = details
        self.hint = hint
        super().__init__(message, code="BACKEND_ERROR")


class NoRowsError(BackendError):
    """Raised when a single-row query matches nothing."""

    def __init__(self, table: str):
        self.table = table
        super().__init__(
            f"Aucune ligne trouvée dans '{table}'.",
            status=406,
            code="PGRST116",
        )


class BackendUnavailableError(BackendError):
    """Raised when the backend cannot be reached at all."""

    def __init__(self, reason: str):
        super().__init__(f"Service indisponible: {reason}")


# =============================================================================
# AUTHENTICATION EXCEPTIONS
# =============================================================================

class AuthenticationError(CRMException):
    """Base class for authentication-related errors."""

    def __init__(self, message: str):
        super().__init__(message, code="AUTH_ERROR")


class InvalidCredentialsError(AuthenticationError):
    """Raised when login credentials are invalid."""

    def __init__(self):
        super().__init__("Email ou mot de passe incorrect.")


class EmailNotConfirmedError(AuthenticationError):
    """Raised when the account email has not been confirmed yet."""

    def __init__(self):
        super().__init__("Email non confirmé. Vérifiez votre boîte de réception.")


class UserAlreadyRegisteredError(AuthenticationError):
    """Raised on sign-up with an email that already has an account."""

    def __init__(self, email: str = ""):
        self.email = email
        super().__init__("Cet email est déjà enregistré.")


class SessionExpiredError(AuthenticationError):
    """Raised when the session expired and could not be refreshed."""

    def __init__(self):
        super().__init__("Votre session a expiré. Veuillez vous reconnecter.")


class TokenInvalidError(AuthenticationError):
    """Raised when the access token is malformed or invalid."""

    def __init__(self):
        super().__init__("Token invalide. Veuillez vous reconnecter.")


class NotAuthenticatedError(AuthenticationError):
    """Raised when an action requires authentication but user is not logged in."""

    def __init__(self):
        super().__init__("Vous devez être connecté pour effectuer cette action.")


class SessionStorageError(AuthenticationError):
    """Raised when the local session cannot be written."""

    def __init__(self, reason: Any):
        super().__init__(f"Impossible de sauvegarder la session: {reason}")


# =============================================================================
# TENANT EXCEPTIONS
# =============================================================================

class CompanyError(CRMException):
    """Base class for company (tenant) resolution errors."""

    def __init__(self, message: str):
        super().__init__(message, code="COMPANY_ERROR")


class CompanyLoadError(CompanyError):
    """Raised when the companies of the user cannot be loaded."""

    def __init__(self, reason: Any = None):
        self.reason = reason
        message = "Erreur lors du chargement des entreprises."
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class NoCompanySelectedError(CompanyError):
    """Raised when an action needs a current company and none is selected."""

    def __init__(self):
        super().__init__(
            "Aucune entreprise sélectionnée. Utilisez 'companies switch'."
        )


class CompanyNotFoundError(CompanyError):
    """Raised when switching to a company the user has no access to."""

    def __init__(self, company_id: str):
        self.company_id = company_id
        super().__init__(f"Entreprise non disponible: {company_id}")


# =============================================================================
# AUTHORIZATION EXCEPTIONS
# =============================================================================

class AuthorizationError(CRMException):
    """Base class for authorization-related errors."""

    def __init__(self, message: str):
        super().__init__(message, code="AUTHZ_ERROR")


class PermissionDeniedError(AuthorizationError):
    """Raised when the profile lacks a required module permission."""

    ACTION_LABELS = {
        "create": "créer",
        "read": "consulter",
        "update": "modifier",
        "delete": "supprimer",
    }

    def __init__(self, module: str, action: str):
        self.module = module
        self.action = action
        verb = self.ACTION_LABELS.get(action, action)
        super().__init__(
            f"Vous n'avez pas le droit de {verb} dans le module '{module}'."
        )


# =============================================================================
# VALIDATION EXCEPTIONS
# =============================================================================

class ValidationError(CRMException):
    """Base class for validation errors."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        code = f"VALIDATION_ERROR:{field}" if field else "VALIDATION_ERROR"
        super().__init__(message, code=code)

    def __str__(self) -> str:
        if self.field:
            return f"[{self.field}] {self.message}"
        return self.message


class MissingFieldError(ValidationError):
    """Raised when a required field is missing."""

    def __init__(self, field: str, entity: str = ""):
        self.entity = entity
        message = f"Le champ '{field}' est requis"
        if entity:
            message += f" pour {entity}"
        super().__init__(message, field=field)


class InvalidEmailError(ValidationError):
    """Raised when an email address is invalid."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Format d'email invalide: {email}", field="email")


class InvalidPhoneError(ValidationError):
    """Raised when a phone number is invalid."""

    def __init__(self, phone: str, field_name: str = "phone"):
        self.phone = phone
        super().__init__(f"Format de téléphone invalide: {phone}", field=field_name)


class InvalidAmountError(ValidationError):
    """Raised when a monetary amount is invalid."""

    def __init__(self, field: str, reason: str = "doit être un nombre positif"):
        super().__init__(f"{field} {reason}", field=field)


class InvalidStatusError(ValidationError):
    """Raised when an enumerated value is not accepted."""

    def __init__(self, status: str, valid_values: list[str], field: str = "status"):
        self.status = status
        self.valid_values = valid_values
        super().__init__(
            f"Valeur invalide: {status}. Valeurs acceptées: {', '.join(valid_values)}",
            field=field,
        )


class DateParseError(ValidationError):
    """Raised when a date cannot be parsed."""

    def __init__(self, value: str, expected_formats: Optional[list[str]] = None):
        self.value = value
        self.expected_formats = expected_formats or ["YYYY-MM-DD", "DD/MM/YYYY"]
        super().__init__(
            f"Format de date invalide: '{value}'. "
            f"Formats acceptés: {', '.join(self.expected_formats)}",
            field="date",
        )


# =============================================================================
# ENTITY EXCEPTIONS
# =============================================================================

class EntityNotFoundError(CRMException):
    """Raised when a record is not found in the current company."""

    def __init__(self, entity_type: str, identifier: Any):
        self.entity_type = entity_type
        self.identifier = identifier
        super().__init__(
            f"{entity_type} non trouvé: {identifier}",
            code=f"NOT_FOUND:{entity_type.upper()}",
        )


class ClientNotFoundError(EntityNotFoundError):
    """Raised when a client is not found."""

    def __init__(self, client_id: str):
        super().__init__("Client", client_id)


class ProposalNotFoundError(EntityNotFoundError):
    """Raised when a proposal is not found."""

    def __init__(self, proposal_id: str):
        super().__init__("Proposition", proposal_id)


class TaskNotFoundError(EntityNotFoundError):
    """Raised when a task is not found."""

    def __init__(self, task_id: str):
        super().__init__("Tâche", task_id)


class MessageNotFoundError(EntityNotFoundError):
    """Raised when a notification message is not found."""

    def __init__(self, message_id: str):
        super().__init__("Message", message_id)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def is_retriable_error(exc: Exception) -> bool:
    """
    Check if an error is retriable (e.g., network issues).

    Args:
        exc: The exception to check.

    Returns:
        True if the operation can be retried.
    """
    if isinstance(exc, BackendUnavailableError):
        return True

    if isinstance(exc, BackendError) and exc.status is not None:
        return exc.status >= 500

    # Most CRM exceptions are not retriable
    if isinstance(exc, CRMException):
        return False

    if "connection" in str(exc).lower():
        return True

    return False
