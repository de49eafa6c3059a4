"""Exception hierarchy for the pricing engine"""


class QuoteEngineError(Exception):
    pass


class InvalidInputError(QuoteEngineError):
    """Form state is not computable yet (missing coordinates or no items)."""


class PricingServiceError(QuoteEngineError):
    """The price oracle failed, timed out or answered with garbage."""


class InvariantViolationError(QuoteEngineError):
    """A breakdown does not add up. Always a bug."""
