from __future__ import annotations

from typing import Any


class InvalidInputError(ValueError):
    """Geometry, material or reinforcement input rejected before any computation."""


class SectionValidationError(InvalidInputError):
    """A polygonal section record failed validation."""


class ConvergenceError(RuntimeError):
    """An iterative solver exhausted its iteration cap (raised only in strict mode).

    `result` holds the best estimate reached before the cap.
    """

    def __init__(self, message: str, result: Any = None) -> None:
        super().__init__(message)
        self.result = result
