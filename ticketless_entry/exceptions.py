"""
Custom Exceptions for Ticketless Entry

This module defines the exception classes raised by the record store,
the check-in engine and the reconciliation batch. The HTTP layer turns
them into JSON outcomes; none of them is retried automatically.
"""


class TicketlessEntryException(Exception):
    """
    Base exception for Ticketless Entry

    All custom exceptions in the system inherit from this base class
    so the HTTP layer can handle them uniformly.
    """

    def __init__(self, message: str, error_code: str = None):
        """
        Initialize Ticketless Entry exception

        Args:
            message: Human-readable error message
            error_code: Optional error code for programmatic handling
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code

    def __str__(self) -> str:
        """String representation of the exception"""
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message


class MissingParameterException(TicketlessEntryException):
    """
    Raised when a required input (token, member id) is empty
    """

    def __init__(self, parameter: str, message: str = None):
        """
        Initialize missing parameter exception

        Args:
            parameter: Name of the parameter that was not provided
            message: Optional message shown to the scanning staff
        """
        super().__init__(message or f"{parameter} not provided", "NOT_PROVIDED")
        self.parameter = parameter


class TicketNotFoundException(TicketlessEntryException):
    """
    Raised when a scanned token matches no attendee row
    """

    def __init__(self, token: str, message: str = None):
        """
        Initialize ticket not found exception

        Args:
            token: The token that was scanned
            message: Optional message shown to the scanning staff
        """
        super().__init__(message or f"Ticket '{token}' not found", "TICKET_NOT_FOUND")
        self.token = token


class MemberNotFoundException(TicketlessEntryException):
    """
    Raised when a manually entered member id matches no attendee row
    """

    def __init__(self, member_id: str, message: str = None):
        """
        Initialize member not found exception

        Args:
            member_id: The member id that was entered
            message: Optional message shown to the scanning staff
        """
        super().__init__(message or f"Member with ID '{member_id}' not found", "MEMBER_NOT_FOUND")
        self.member_id = member_id


class DataValidationException(TicketlessEntryException):
    """
    Raised when data validation fails

    This exception is thrown when configuration or sheet data doesn't
    meet the required validation criteria.
    """

    def __init__(self, field_name: str, validation_error: str):
        """
        Initialize data validation exception

        Args:
            field_name: Name of the field that failed validation
            validation_error: Description of the validation error
        """
        message = f"Validation error in field '{field_name}': {validation_error}"
        super().__init__(message, "VALIDATION_ERROR")
        self.field_name = field_name
        self.validation_error = validation_error


class DataAccessException(TicketlessEntryException):
    """
    Raised when data access operations fail

    This exception is thrown when reading from or writing to the
    spreadsheet (or any other record store) fails.
    """

    def __init__(self, operation: str, details: str):
        """
        Initialize data access exception

        Args:
            operation: The operation that failed (e.g., 'read', 'update_cell')
            details: Detailed error information
        """
        message = f"Data access error during {operation}: {details}"
        super().__init__(message, "DATA_ACCESS_ERROR")
        self.operation = operation
        self.details = details


class StoreLockException(TicketlessEntryException):
    """
    Raised when the record store lock cannot be acquired in time
    """

    def __init__(self, lock_name: str, timeout: float):
        message = f"Could not acquire store lock '{lock_name}' within {timeout} seconds"
        super().__init__(message, "STORE_LOCKED")
        self.lock_name = lock_name
        self.timeout = timeout


class ReconciliationException(TicketlessEntryException):
    """
    Raised when the order/member reconciliation batch cannot run

    The batch is aborted before any row is written.
    """

    def __init__(self, reason: str):
        """
        Initialize reconciliation exception

        Args:
            reason: Reason the batch was aborted
        """
        super().__init__(f"Reconciliation aborted: {reason}", "RECONCILIATION_ERROR")
        self.reason = reason
