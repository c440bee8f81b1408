"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ConfigurationError(DomainException):
    """Policy tables are inconsistent or incomplete; the whole run must abort"""

    pass


class InvalidRecordError(DomainException):
    """A single calculation input is unusable (caller error, not a batch data issue)"""

    pass


class AggregateFinalizedError(DomainException):
    """A payout was posted to a 1099 aggregate that has already been finalized"""

    pass
