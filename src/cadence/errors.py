"""Errors raised while scheduling tasks."""

from collections.abc import Sequence


def _join(expressions: Sequence[str]) -> str:
    return ", ".join(expressions)


class SchedulingError(ValueError):
    """Base class for scheduling failures."""


class ExpressionParseError(SchedulingError):
    """A timing expression matched none of the supported grammars."""

    def __init__(self, expression: str, expressions: Sequence[str]):
        self.expression = expression
        self.expressions = list(expressions)
        super().__init__(
            f'Unsupported time string "{expression}" in scheduler expression '
            f'"{_join(self.expressions)}"'
        )


class NoCandidateError(SchedulingError):
    """No usable future instant remained after resolving every expression."""

    def __init__(self, expressions: Sequence[str]):
        self.expressions = list(expressions)
        super().__init__(
            f'Cannot determine next scheduled tick from schedule "{_join(self.expressions)}"'
        )


class MissingCallbackError(SchedulingError):
    """A task was given an empty callback."""

    def __init__(self) -> None:
        super().__init__("No task payload provided")


class UninitializedTaskError(SchedulingError):
    """A task fired before a callback was installed."""

    def __init__(self) -> None:
        super().__init__("Task executed with no payload")
