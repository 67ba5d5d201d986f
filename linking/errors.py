"""Exception types raised by the linking layer."""

from __future__ import annotations


class BindingError(ValueError):
    """Raised when a dashboard configuration cannot be bound.

    Args:
        errors: Individual validation messages that caused the failure.
    """

    def __init__(self, errors: tuple[str, ...] | list[str]) -> None:
        self.errors = tuple(errors)
        joined = "\n".join(f"- {error}" for error in self.errors)
        super().__init__(f"Invalid dashboard configuration:\n{joined}")


class SelectionValueError(ValueError):
    """Raised when a selection value does not match its parameter kind."""


class RenderFailure(RuntimeError):
    """Raised when a configuration cannot be compiled for the renderer."""
