"""Domain error types shared by services and repositories"""


class AppError(Exception):
    """Base class for errors the API reports to callers"""

    kind = "unknown_error"
    status_code = 500

    def __init__(self, message: str = "unexpected error"):
        super().__init__(message)
        self.message = message


class NotFoundError(AppError):
    """Raised when a referenced schedule, task or user does not exist"""

    kind = "not_found"
    status_code = 404


class DomainValidationError(AppError):
    """Raised when a request breaks a lifecycle or data rule"""

    kind = "validation_error"
    status_code = 400


class ResourceAlreadyExistsError(AppError):
    """Raised when a write hits a unique constraint"""

    kind = "resource_already_exists"
    status_code = 409


class RepositoryError(AppError):
    """Raised for store failures that are not otherwise classified"""

    kind = "repository_error"
    status_code = 500
