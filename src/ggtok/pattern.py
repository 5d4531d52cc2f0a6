"""Pre-tokenization patterns that split text into BPE pre-tokens."""

from enum import Enum

import regex as re

from ._unicode import split_codepoints, span_bytes
from .errors import PatternError


class TokenPattern(str, Enum):
    """
    Pre-defined regex patterns for BPE pre-tokenization.

    Sources:
    - GPT2: https://github.com/openai/tiktoken/blob/main/tiktoken_ext/openai_public.py
    """

    # contractions, letter runs, digit runs, other-symbol runs, whitespace runs.
    # every codepoint falls in exactly one class so matches tile the input
    DEFAULT = (
        r"'s|'t|'re|'ve|'m|'ll|'d|"
        r"\p{L}+|"
        r"\p{N}+|"
        r"[^\s\p{L}\p{N}]+|"
        r"\s+"
    )

    # OpenAI models
    GPT2 = (
        r"'(?:[sdmt]|ll|ve|re)|"
        r" ?\p{L}+|"
        r" ?\p{N}+|"
        r" ?[^\s\p{L}\p{N}]+|"
        r"\s+(?!\S)|"
        r"\s+"
    )

    @classmethod
    def get(cls, name: str) -> str:
        """Get patterns by name (case-insensitive)."""
        try:
            return cls[name.upper().replace("-", "_")].value
        except KeyError:
            raise PatternError(
                f"Unknown pattern: {name!r}. "
                f"Valid patterns: {', '.join(pat.name for pat in cls)}"
            )


def list_patterns() -> list[str]:
    """Return names of all available built-in pre-tokenization patterns."""
    return [pat.name.lower() for pat in TokenPattern]


def compile_pattern(pattern: str) -> re.Pattern:
    """
    Compile and validate a regex pattern.

    :param pattern: Regex pattern string to compile.
    :return: Compiled regex pattern.
    :raises PatternError: If pattern is invalid.
    """
    try:
        return re.compile(pattern)
    except re.error as e:
        raise PatternError("invalid regex pattern", pattern=pattern, regex_err=e)


def pre_tokenize(compiled: re.Pattern, text: str) -> list[str]:
    """
    Split ``text`` into pre-tokens, left to right, covering the whole string.

    Text that the pattern leaves uncovered (between matches or after the last
    one, or everything when nothing matches) is split per codepoint instead of
    being matched again.
    """
    if not text:
        return []

    pieces: list[str] = []
    last = 0
    for m in compiled.finditer(text):
        start, end = m.span()
        if start > last:
            pieces.extend(_codepoint_pieces(text[last:start]))
        if end > start:
            pieces.append(m.group(0))
        last = max(last, end)
    if last < len(text):
        pieces.extend(_codepoint_pieces(text[last:]))
    return pieces


def _codepoint_pieces(text: str) -> list[str]:
    # go through bytes so malformed spans are dropped the same way everywhere
    return split_codepoints(span_bytes(text))
