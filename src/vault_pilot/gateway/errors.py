from __future__ import annotations

from typing import Any


class RemoteError(Exception):
    """Raised when the vaults.fyi API returns a non-2xx or malformed response.

    ``status_code`` is None when no HTTP response was received (connection
    failure) or when the body could not be decoded.
    """

    def __init__(
        self,
        status_code: int | None,
        body: Any,
        method: str = "GET",
        path: str = "",
        message: str | None = None,
    ):
        self.status_code = status_code
        self.body = body
        self.method = method
        self.path = path
        detail = message or _summarize_body(body)
        status = status_code if status_code is not None else "no status"
        super().__init__(f"{method} {path} failed ({status}): {detail}")

    @property
    def retryable(self) -> bool:
        return self.status_code is None or self.status_code in {429, 500, 502, 503, 504}


def _summarize_body(body: Any, limit: int = 200) -> str:
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    text = str(body)
    if len(text) > limit:
        return text[:limit] + "..."
    return text
