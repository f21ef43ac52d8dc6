from __future__ import annotations

from typing import Any

INTERNAL_ERROR_MESSAGE = "Internal server error"


class ApiError(Exception):
    """An error that maps straight onto an HTTP status and a JSON body.

    The body always carries ``error``; ``extra`` fields are merged in for
    endpoints whose failure shape has more keys.
    """

    def __init__(self, status_code: int, error: str, **extra: Any) -> None:
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.extra = extra

    def to_body(self) -> dict[str, Any]:
        return {"error": self.error, **self.extra}


class NotFound(ApiError):
    def __init__(self, error: str = "Transaction not found", **extra: Any) -> None:
        super().__init__(404, error, **extra)
