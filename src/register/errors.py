from __future__ import annotations

from typing import Optional


class RegisterError(Exception):
    """Base class of everything the register reports back to the cashier."""

    message = "Register error."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class ValidationError(RegisterError):
    """Missing stall, empty cart, missing or blank required field."""

    message = "Invalid input."


class Unauthorized(RegisterError):
    """The identity check failed or the role is not sufficient."""

    message = "Wrong PIN."


class SequencingFailure(RegisterError):
    """No receipt number could be issued. No order was created."""

    message = "Could not issue a receipt number."


class PersistenceError(RegisterError):
    """A storage read/write failed.

    `retryable` is set for busy/locked/timeout conditions. Writes made before
    the failing step are not rolled back by the caller and need an operator
    to look at them.
    """

    message = "Storage failure."

    def __init__(self, message: Optional[str] = None, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class NotFound(RegisterError):
    message = "Receipt not found."


class AlreadyVoided(RegisterError):
    message = "This receipt has already been voided."
