"""Business-logic exceptions shared by the infrastructure packages."""


class BusinessLogicException(Exception):
    """Base exception class for business logic errors."""

    def __init__(self, message: str, error_code: str) -> None:
        self.message = message
        self.error_code = error_code
        super().__init__(message)


class InvalidOperationException(BusinessLogicException):
    """Raised when an operation is not allowed in the current state."""

    def __init__(self, operation: str, cause: str) -> None:
        self.operation = operation
        self.cause = cause
        message = f"Cannot {operation} because {cause}"
        super().__init__(message, error_code="INVALID_OPERATION")
