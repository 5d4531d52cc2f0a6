"""
UTF-8 codepoint segmentation over raw byte buffers.

Only the leading byte of a sequence is inspected, continuation bytes are not
validated. Spans are converted to ``str`` with ``surrogateescape``, so
malformed bytes survive as lone surrogates (byte ``0xff`` becomes
U+DCFF). The GGUF reader decodes raw-byte vocabulary entries the same
way, so such a span matches a token holding exactly those bytes.
"""

from collections.abc import Iterator


def codepoint_length(buf: bytes, pos: int = 0, max_len: int | None = None) -> int:
    """
    Return the byte length of the UTF-8 codepoint starting at ``buf[pos]``.

    :param buf: Byte buffer to inspect.
    :param pos: Offset of the leading byte.
    :param max_len: Number of bytes available from ``pos`` (default: rest of ``buf``).
    :returns: 1-4, or 0 if the leading byte is invalid or the sequence is truncated.
    """
    available = len(buf) - pos
    if max_len is None or max_len > available:
        max_len = available
    if max_len <= 0:
        return 0

    c = buf[pos]
    if c < 0x80:
        return 1
    if max_len >= 2 and (c & 0xE0) == 0xC0:
        return 2
    if max_len >= 3 and (c & 0xF0) == 0xE0:
        return 3
    if max_len >= 4 and (c & 0xF8) == 0xF0:
        return 4
    # stray continuation byte, 5/6 byte lead or truncated sequence
    return 0


def iter_codepoints(buf: bytes) -> Iterator[tuple[int, int]]:
    """
    Yield ``(offset, length)`` for every codepoint in ``buf``.

    Malformed bytes are yielded with length 0; the iterator then advances by
    exactly one byte so callers can decide whether to emit unk.
    """
    pos = 0
    end = len(buf)
    while pos < end:
        n = codepoint_length(buf, pos)
        yield pos, n
        pos += n or 1


def to_bytes(text: str | bytes) -> bytes:
    """Return the UTF-8 bytes of ``text``; ``bytes`` input is passed through."""
    if isinstance(text, bytes):
        return text
    # lone surrogates are kept rather than raising
    return text.encode("utf-8", errors="surrogatepass")


def span_text(buf: bytes) -> str:
    """Decode a byte span for vocabulary lookup without ever raising."""
    return buf.decode("utf-8", errors="surrogateescape")


def span_bytes(text: str) -> bytes:
    """Inverse of :func:`span_text`."""
    return text.encode("utf-8", errors="surrogateescape")


def split_codepoints(buf: bytes) -> list[str]:
    """Split ``buf`` into one string per codepoint, dropping malformed bytes."""
    return [span_text(buf[off : off + n]) for off, n in iter_codepoints(buf) if n]
