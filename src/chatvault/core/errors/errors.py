"""
Unified errors and Result wrapper so pipeline stages can degrade or abort by severity.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Generic, Optional, TypeVar, Union, cast


class ErrorSeverity(Enum):
    WARNING = "warning"      # keep going
    ERROR = "error"          # stage failed
    CRITICAL = "critical"    # dependent features must stop


@dataclass(eq=False)
class ChatVaultError(Exception):
    message: str
    severity: Optional[ErrorSeverity] = None
    code: Optional[str] = None
    context: Dict[str, Any] | None = None

    default_code: ClassVar[str] = "UNKNOWN"
    default_severity: ClassVar[ErrorSeverity] = ErrorSeverity.ERROR

    def __post_init__(self) -> None:
        if self.code is None:
            self.code = self.default_code
        if self.severity is None:
            self.severity = self.default_severity

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class LLMError(ChatVaultError):
    default_code = "LLM_ERROR"


class LLMTimeoutError(LLMError):
    """The model call exceeded its explicit per-call budget and was aborted."""

    default_code = "LLM_TIMEOUT"


class ModelUnavailableError(ChatVaultError):
    """Model endpoint or weights missing; raised at setup, never swallowed."""

    default_code = "MODEL_UNAVAILABLE"
    default_severity = ErrorSeverity.CRITICAL


class EmbeddingError(ChatVaultError):
    default_code = "EMBEDDING_ERROR"
    default_severity = ErrorSeverity.WARNING


class ParseError(ChatVaultError):
    default_code = "PARSE_ERROR"
    default_severity = ErrorSeverity.WARNING


class ValidationError(ChatVaultError):
    default_code = "VALIDATION_ERROR"
    default_severity = ErrorSeverity.WARNING


T = TypeVar("T")
E = TypeVar("E", bound=ChatVaultError)


@dataclass
class Result(Generic[T, E]):
    """Tagged success/failure value instead of loose status dicts."""

    _value: Union[T, E]
    _is_ok: bool

    @classmethod
    def ok(cls, value: T) -> "Result[T, E]":
        return cls(_value=value, _is_ok=True)

    @classmethod
    def err(cls, error: E) -> "Result[T, E]":
        return cls(_value=error, _is_ok=False)

    def is_ok(self) -> bool:
        return self._is_ok

    @property
    def error(self) -> Optional[E]:
        return None if self._is_ok else cast(E, self._value)

    def unwrap(self) -> T:
        if not self._is_ok:
            raise cast(E, self._value)
        return cast(T, self._value)

    def unwrap_or(self, default: T) -> T:
        return cast(T, self._value) if self._is_ok else default

    def map(self, fn) -> "Result[T, E]":
        if self._is_ok:
            return Result.ok(fn(self._value))  # type: ignore[arg-type]
        return self
