"""
Unified error module.
"""

from .errors import (
    ErrorSeverity,
    ChatVaultError,
    LLMError,
    LLMTimeoutError,
    ModelUnavailableError,
    EmbeddingError,
    ParseError,
    ValidationError,
    Result,
)

__all__ = [
    "ErrorSeverity",
    "ChatVaultError",
    "LLMError",
    "LLMTimeoutError",
    "ModelUnavailableError",
    "EmbeddingError",
    "ParseError",
    "ValidationError",
    "Result",
]
