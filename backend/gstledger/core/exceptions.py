"""
Domain Exceptions
"""


class LedgerError(ValueError):
    """Base class for errors raised by the services layer"""
    status_code = 400
    
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Input rejected before anything was persisted"""
    status_code = 422


class NotFoundError(LedgerError):
    """Record missing or outside the caller's tenant"""
    status_code = 404


class ConflictError(LedgerError):
    """Duplicate document number or name"""
    status_code = 409


class ConsistencyError(LedgerError):
    """Stock update would leave a product below zero"""
    status_code = 409


class DependencyError(LedgerError):
    """Store failure during a sub-step"""
    status_code = 503


class InvariantViolation(LedgerError):
    """Illegal state transition, e.g. regressing a paid invoice"""
    status_code = 409
