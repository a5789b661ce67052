class NotFoundError(ValueError):
    """The record does not exist or belongs to another user."""


class ValidationError(ValueError):
    """Input rejected by a service before any write happened."""
