"""
Pipeline-level exceptions.

Row validation problems are never raised; they are collected as strings on
each draft record. Only failures that make the whole run impossible end up
here.
"""


class StructuralError(Exception):
    """Fatal pipeline error: unreadable input, no rows, or unusable mapping."""

    pass


class InvalidTransitionError(Exception):
    """Raised when an import session operation is called from the wrong state."""

    def __init__(self, operation: str, state: str, allowed: list[str]):
        self.operation = operation
        self.state = state
        self.allowed = allowed
        super().__init__(
            f"Cannot {operation} while session is {state} (allowed: {', '.join(allowed)})"
        )
