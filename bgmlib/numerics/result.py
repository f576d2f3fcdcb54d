"""Value-or-error record for work collected from independent tasks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or the exception that prevented computing it."""

    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, re-raising the stored error if there is one."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: BaseException) -> "Result[T]":
        return cls(error=error)

    @classmethod
    def capture(cls, fn: Callable[[], T]) -> "Result[T]":
        """Run ``fn`` and record its value, or the exception it raised."""
        try:
            return cls.success(fn())
        except Exception as exc:
            return cls.failure(exc)
