"""Exceptions raised at the edges of the fleet core."""


class ValidationError(ValueError):
    """Input rejected before any state changed (missing plate, duplicate email, ...)."""


class CheckoutError(RuntimeError):
    """The external checkout could not be started or confirmed."""


class ReportError(RuntimeError):
    """An audit report could not be produced."""
