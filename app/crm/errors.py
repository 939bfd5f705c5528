from __future__ import annotations

from typing import Any


class CustomerError(Exception):
    """
    Base for failures surfaced to the caller of a customer operation.
    Each subclass maps to one HTTP status; `errors` carries per-item detail.
    """

    status_code = 500

    def __init__(self, message: str, *, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = list(errors or [])

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(CustomerError):
    status_code = 400


class ConflictError(CustomerError):
    status_code = 409

    def __init__(
        self,
        message: str,
        *,
        errors: list[str] | None = None,
        conflicts: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message, errors=errors)
        self.conflicts = list(conflicts or [])

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["conflicts"] = self.conflicts
        return body


class NotFoundError(CustomerError):
    status_code = 404


class StorageError(CustomerError):
    # The underlying cause is logged where it is raised; only `message` goes out.
    status_code = 500
