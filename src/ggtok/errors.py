"""Custom exception hierarchy for ggtok loading and tokenization errors."""

from typing import Any

import regex as re

from .types import TokenId


class GGTokError(Exception):
    """
    Base exception for all ggtok errors.

    Keyword context passed by subclasses is stored as attributes and, when
    not ``None``, appended to the message as ``(label: value)``.
    """

    # attribute name -> label used in the message
    _LABELS: dict[str, str] = {}

    def __init__(self, message: str, **context: Any) -> None:
        parts = [message]
        for name, value in context.items():
            setattr(self, name, value)
            if value is not None:
                parts.append(f"({self._LABELS.get(name, name)}: {value})")
        super().__init__(" ".join(parts))


class LoadError(GGTokError):
    """Raised when a vocabulary cannot be built from metadata."""

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message, key=key)


class MissingTokensError(LoadError):
    """Raised when the required token array is absent from the metadata."""


class MetadataError(GGTokError):
    """Raised when a metadata file cannot be parsed; ``offset`` is where reading stopped."""

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        offset: int | None = None,
    ) -> None:
        super().__init__(message, path=path, offset=offset)


class VocabularyError(GGTokError):
    """Raised when a vocabulary is inconsistent or an id lookup fails."""

    _LABELS = {"vocab_size": "vocab size", "invalid_tok": "invalid token"}

    def __init__(
        self,
        message: str,
        *,
        vocab_size: int | None = None,
        invalid_tok: TokenId | None = None,
    ) -> None:
        super().__init__(message, vocab_size=vocab_size, invalid_tok=invalid_tok)


class PatternError(GGTokError):
    """Raised when a pre-tokenization pattern is unknown or fails to compile."""

    _LABELS = {"regex_err": "reason"}

    def __init__(
        self,
        message: str,
        *,
        pattern: str | None = None,
        regex_err: re.error | None = None,
    ) -> None:
        """
        Args:
            message: Error message.
            pattern: The pattern string or name that was rejected.
            regex_err: The underlying error from the regex library.
        """
        super().__init__(message, pattern=pattern, regex_err=regex_err)


class ModeError(GGTokError):
    """Raised when an unknown named mode or type is requested."""

    _LABELS = {"invalid_name": "got"}

    def __init__(
        self,
        message: str,
        *,
        invalid_name: str | None = None,
        available: list[str] | None = None,
    ) -> None:
        super().__init__(message, invalid_name=invalid_name, available=available)
