from __future__ import annotations

import re
from typing import Any


_ERROR_CODE_RE = re.compile(r"^[a-z][a-z0-9_]*(\.[a-z][a-z0-9_]*)*$")


class FundflowError(Exception):
    """Base typed error for fundflow.

    Goals:
    - Stable `code` for programmatic handling across clients.
    - Human-readable `message` for UI surfaces.
    - Optional `meta` payload for debugging (safe-to-expose only).
    """

    def __init__(
        self,
        *,
        code: str,
        message: str,
        status_code: int = 500,
        meta: dict[str, Any] | None = None,
    ) -> None:
        if not _ERROR_CODE_RE.fullmatch(code):
            raise ValueError(
                "Invalid error code. Expected dot-separated lowercase tokens, "
                f"got: {code!r}"
            )
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = int(status_code)
        self.meta = dict(meta or {})


class NotFoundError(FundflowError):
    def __init__(self, *, message: str = "Not found", code: str = "resource.not_found", meta: dict[str, Any] | None = None):
        super().__init__(code=code, message=message, status_code=404, meta=meta)


class ConflictError(FundflowError):
    def __init__(
        self,
        *,
        message: str = "Conflict",
        code: str = "request.conflict",
        meta: dict[str, Any] | None = None,
        status_code: int = 409,
    ):
        super().__init__(code=code, message=message, status_code=status_code, meta=meta)


ORDER_LOCKED_MESSAGE = "This order is already been processed, please try again later"


class LockBusyError(ConflictError):
    """The order lock is held by another operation and no retries remain."""

    def __init__(
        self,
        *,
        message: str = ORDER_LOCKED_MESSAGE,
        code: str = "order.locked",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, meta=meta, status_code=423)
