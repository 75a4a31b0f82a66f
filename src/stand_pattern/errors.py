from __future__ import annotations


class DomainError(ValueError):
    """
    Invalid geometry or statistics input.

    Raised before any kernel runs, so a failing call never produces partial
    output. ``argument`` names the offending parameter and ``constraint`` the
    rule it broke.
    """

    def __init__(self, argument: str, constraint: str, detail: str | None = None) -> None:
        self.argument = argument
        self.constraint = constraint
        message = f"{argument}: {constraint}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
