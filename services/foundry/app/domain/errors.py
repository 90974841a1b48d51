"""Error taxonomy shared by the generation pipeline and the API layer."""
from __future__ import annotations

from typing import Any


class FoundryError(Exception):
    """Base class for every error the core reports to callers."""

    def __init__(self, message: str, details: Any | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(FoundryError):
    """Malformed or missing required input."""


class NotFoundError(FoundryError):
    """A referenced project, graph or artifact does not exist."""


class GenerationError(FoundryError):
    """A generation stage failed or its output did not match the document schema."""

    def __init__(self, message: str, stage: str | None = None, details: Any | None = None) -> None:
        super().__init__(message, details)
        self.stage = stage


class GenerationTimeoutError(GenerationError):
    """The caller-supplied deadline expired before every stage completed."""


class PersistenceError(FoundryError):
    """An artifact store write failed.

    ``committed`` lists the artifact types already written before the failure;
    those writes stay in place.
    """

    def __init__(self, message: str, committed: list[str] | None = None, details: Any | None = None) -> None:
        super().__init__(message, details)
        self.committed = list(committed or [])


__all__ = [
    "FoundryError",
    "ValidationError",
    "NotFoundError",
    "GenerationError",
    "GenerationTimeoutError",
    "PersistenceError",
]
