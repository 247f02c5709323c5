"""Completion results delivered to callers.

A unit of work resolves to exactly one ``CompletionResult``: either
``Success(value)`` or ``Failure(error)``.  ``ErrorInfo`` is the single
structured failure signal callers ever see; validation failures and
runtime faults share it so callers need not distinguish timing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from pydantic import BaseModel, ConfigDict

from .enums import ErrorDomain

T = TypeVar("T")

RUNTIME_FAULT_CODE = -1


class ErrorInfo(BaseModel):
    """Immutable description of a failure."""

    model_config = ConfigDict(frozen=True)

    domain: str
    code: int
    message: str = ""

    @classmethod
    def from_exception(cls, exc: BaseException) -> ErrorInfo:
        """Wrap an exception raised inside queued work."""
        return cls(
            domain=ErrorDomain.RUNTIME_FAULT.value,
            code=RUNTIME_FAULT_CODE,
            message=f"{type(exc).__name__}: {exc}",
        )

    @classmethod
    def validation(
        cls,
        message: str,
        code: int = 0,
        domain: str = ErrorDomain.VALIDATION.value,
    ) -> ErrorInfo:
        """Describe rejected input; *domain* lets callers keep their own."""
        return cls(domain=domain, code=code, message=message)


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

    @property
    def is_success(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Failure:
    error: ErrorInfo

    @property
    def is_success(self) -> bool:
        return False

    def unwrap(self):
        raise ValueError(f"unwrap() on Failure: {self.error.domain}/{self.error.code}")


CompletionResult = Union[Success[T], Failure]
