"""Uniform result shape returned by every service call.

Expected failures never raise: callers get ``success=False`` with a short,
user-facing ``error`` string and a machine-readable ``code``.
"""

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from fastapi import HTTPException

from codeduel.core.exceptions import ErrorCode, http_error

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """Outcome of a service operation."""

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def ok(cls, data: Optional[T] = None) -> "ServiceResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(
        cls,
        error: str,
        code: ErrorCode | str = ErrorCode.ERROR,
    ) -> "ServiceResult[T]":
        code_value = code.value if isinstance(code, ErrorCode) else code
        return cls(success=False, error=error, code=code_value)

    def unwrap(self) -> T:
        """Return the data or raise the matching HTTP error."""
        if not self.success:
            raise self.to_http_error()
        return self.data  # type: ignore[return-value]

    def to_http_error(self) -> HTTPException:
        return http_error(self.error or "Request failed", self.code or ErrorCode.ERROR)

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error, "code": self.code}
