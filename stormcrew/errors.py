"""
Error taxonomy for the identity and availability core.

Ambiguous matches are not errors: the resolver reports them on the
MatchResult and falls through to "no match".
"""


class StormcrewError(Exception):
    """Base class for all errors raised by the core."""
    pass


class NotFound(StormcrewError):
    """Raised when a referenced contractor or availability session is absent."""
    pass


class InvalidArgument(StormcrewError):
    """Raised for malformed ids, self-merges and unknown selectors."""
    pass


class TransactionAborted(StormcrewError):
    """
    Raised when the store fails mid-merge or mid-activation.

    The transaction has been rolled back in full. Callers must re-validate
    their preconditions before retrying.
    """
    pass
