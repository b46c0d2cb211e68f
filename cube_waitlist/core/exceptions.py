"""
Custom exceptions for the application
"""
from typing import List, Optional


class BaseAppException(Exception):
    """Base application exception"""
    def __init__(self, message: str, details: str = None):
        self.message = message
        self.details = details
        super().__init__(self.message)


class InvalidInputError(BaseAppException):
    """Raised when caller input fails validation"""
    pass


class DuplicateEntryError(BaseAppException):
    """Raised when the email is already on the waitlist"""
    pass


class NotFoundError(BaseAppException):
    """Raised when a resource is not found"""
    pass


class StoreUnavailableError(BaseAppException):
    """Raised when the entry store cannot serve a query or write"""
    pass


class PartialDeletionFailureError(BaseAppException):
    """Raised when some deletions of a batch failed.

    Deletions that succeeded are not rolled back; ``removed`` tells the
    caller how many entries are gone so it can reconcile.
    """
    def __init__(self, message: str, removed: int, failures: Optional[List[str]] = None):
        super().__init__(message, details=f"removed={removed}")
        self.removed = removed
        self.failures = failures or []


class NotificationError(BaseAppException):
    """Raised by notifiers when the mail transport rejects a send"""
    pass
