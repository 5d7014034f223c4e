"""
Result values for expected failures.

Overlapping candidates, unreadable directories and failed sync commands are
normal outcomes here, so they travel as `Result` values and only programming
errors raise.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from .types import ErrorCode

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """
    Usage:
        res = await lister.list_directory("/refs/anatomy")
        if not res.ok:
            return res.propagate("Cannot read /refs/anatomy")
        entries = res.data
    """
    ok: bool
    data: Optional[T] = None
    error: Optional[str] = None
    code: str = "OK"
    meta: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def Ok(data: T, **meta: Any) -> "Result[T]":
        return Result(ok=True, data=data, code="OK", meta=meta)

    @staticmethod
    def Err(code: ErrorCode | str | Enum, error: str, **meta: Any) -> "Result[T]":
        code_value = code.value if isinstance(code, Enum) else code
        return Result(ok=False, error=error, code=str(code_value), meta=meta)

    def propagate(self, fallback: str, **meta: Any) -> "Result[Any]":
        """Hand an error up unchanged in code; `fallback` fills a missing message."""
        return Result(ok=False, error=self.error or fallback, code=self.code, meta={**self.meta, **meta})
