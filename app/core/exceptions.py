"""
Custom exceptions for the application

Every exception carries the HTTP status the API layer answers with, so
services raise domain errors and ``app.main`` renders them uniformly.
"""

class BaseAppException(Exception):
    """Base application exception"""
    status_code = 500

    def __init__(self, message: str, details: str = None):
        self.message = message
        self.details = details
        super().__init__(self.message)


class NotFoundError(BaseAppException):
    """Raised when a resource is not found"""
    status_code = 404


class ValidationError(BaseAppException):
    """Raised when validation fails"""
    status_code = 400

    def __init__(self, message: str, details: str = None, error_code: str = None):
        super().__init__(message, details)
        self.error_code = error_code


class InvalidStatusError(ValidationError):
    """Status outside pending/approved/rejected"""


class InvalidUrlFormatError(ValidationError):
    """Post URL does not match a recognised social-post shape"""


class AuthenticationError(BaseAppException):
    """Raised when authentication fails"""
    status_code = 401


class AuthorizationError(BaseAppException):
    """Raised when authorization fails"""
    status_code = 403


class BusinessLogicError(BaseAppException):
    """Raised when business logic constraints are violated"""
    status_code = 400


class AlreadyVerifiedError(BusinessLogicError):
    """Email already verified; token reissue is not allowed"""


class NotVerifiedError(BusinessLogicError):
    """Operation requires a verified email"""


class PostUrlInUseError(BusinessLogicError):
    """Post URL already claimed by another entry"""


class ConflictError(BaseAppException):
    """Raised when a uniqueness rule rejects a write"""
    status_code = 409


class DuplicateEmailError(ConflictError):
    pass


class DuplicateWalletError(ConflictError):
    pass


class RateLimitExceededError(BaseAppException):
    status_code = 429


class ConfigurationError(BaseAppException):
    """Raised when required configuration is missing"""
    status_code = 500


class ExternalServiceError(BaseAppException):
    """Raised when external service calls fail"""
    status_code = 500


class ServiceUnavailableError(ExternalServiceError):
    """Raised when a collaborator (store, email provider) cannot be reached"""


class DatabaseError(BaseAppException):
    """Raised when database operations fail"""
    status_code = 500


class DuplicateKeyError(DatabaseError):
    """Unique constraint violation reported by the store.

    ``field`` names the column whose constraint fired (``email``,
    ``wallet_address``, ``post_url``, ``verification_token``) or is
    ``None`` when the driver message could not be attributed.
    """
    status_code = 409

    def __init__(self, field: str = None, details: str = None):
        super().__init__(f"Duplicate value for {field or 'unique field'}", details)
        self.field = field
