"""
poolrewards/errors.py

Exception types raised by the ledger and the fixed-point library.

Recoverable failures derive from LedgerError: the caller may retry with
different arguments and no state was changed.

Arithmetic failures (ArithmeticOverflow, DivisionByZero) abort the enclosing
operation. DomainError marks a caller passing ln/exp an argument outside the
documented range; it is a programming error, not a runtime condition.
"""


class LedgerError(Exception):
    """Base class for recoverable ledger failures."""
    pass


class InvalidAmount(LedgerError):
    """Requested amount is negative or exceeds the computed entitlement."""
    pass


class Unauthorized(LedgerError):
    """Caller is not allowed to invoke an operator-only operation."""
    pass


class InsufficientBalance(LedgerError):
    """Vault share balance is lower than the requested debit."""
    pass


class ArithmeticOverflow(ArithmeticError):
    """Fixed-point intermediate value does not fit in a signed 256-bit integer."""
    pass


class DivisionByZero(ZeroDivisionError):
    """Fixed-point division by zero."""
    pass


class DomainError(AssertionError):
    """Argument outside the domain of ln/exp."""
    pass
