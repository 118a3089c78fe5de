"""Precondition helpers.

Violated preconditions are programmer errors: they signal that a caller broke
the public contract (e.g. advancing past an unsolved task). They are raised,
never caught, and are distinct from recoverable runtime failures.

Functions:
- require(condition, message): Raise PreconditionError unless condition holds
"""


class PreconditionError(RuntimeError):
    """Raised when an operation is called in a state that forbids it."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Precondition violated: {message}")


def require(condition: bool, message: str) -> None:
    """Raise PreconditionError with message unless condition is true.

    Args:
        condition: The precondition to check
        message: Description of the violated precondition

    Raises:
        PreconditionError: If condition is false
    """
    if not condition:
        raise PreconditionError(message)
