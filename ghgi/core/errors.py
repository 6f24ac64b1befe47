from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base for errors raised by the forms core.

    `errors` optionally carries field-keyed details, e.g. {"key": "..."}.
    """

    status_code = 400

    def __init__(self, message: str, errors: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors


class InvalidArgument(DomainError):
    status_code = 422


class NotFound(DomainError):
    status_code = 404


class Conflict(DomainError):
    status_code = 409
