from __future__ import annotations

from typing import Optional


class DataAccessError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportError(DataAccessError):
    """DNS, connect, timeout or reset failure before a response arrived."""


class HttpStatusError(DataAccessError):
    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(f"HTTP {status_code}: {body}" if body else f"HTTP {status_code}", status_code)
        self.body = body


class DecodeError(DataAccessError):
    """Response body was not valid JSON."""


class SchemaMismatch(DataAccessError):
    def __init__(self, key: str, detail: str = "") -> None:
        super().__init__(f"Value for {key!r} does not match its schema: {detail}".rstrip(": "))
        self.key = key
