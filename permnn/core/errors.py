class PermuteError(Exception):
    """
    Base class of permnn errors
    """

class ConfigurationError(PermuteError, ValueError):
    """
    Malformed axes order.

    Raised once at setup, before any data is processed.

     axis       offending axis value or None

     position   index of the offending value in the user order or None
    """
    def __init__(self, msg, axis=None, position=None):
        super().__init__(msg)
        self.axis = axis
        self.position = position

class InternalInvariantViolation(PermuteError, RuntimeError):
    """
    Planner produced an invalid plan. This is a bug, not a bad input.
    """

class BufferSizeMismatch(PermuteError, ValueError):
    """
    Buffer size does not match the element count of the plan.

     expected   int

     actual     int
    """
    def __init__(self, msg, expected=None, actual=None):
        super().__init__(msg)
        self.expected = expected
        self.actual = actual
