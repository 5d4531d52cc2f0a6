"""
Rendering of token text for one-line, human-readable vocabulary listings.
"""

import unicodedata

# lone surrogates produced by the "surrogateescape" handler, one per raw byte
_ESCAPED_BYTE_MIN = 0xDC80
_ESCAPED_BYTE_MAX = 0xDCFF


def render_token(text: str) -> str:
    """
    Make token text safe to print on one line.

    Raw bytes that were not valid UTF-8 are shown as ``\\xNN``; every other
    character in a ``C*`` Unicode category (control, format, surrogate,
    unassigned) as ``\\uXXXX``.
    """
    out = []
    for c in text:
        cp = ord(c)
        if _ESCAPED_BYTE_MIN <= cp <= _ESCAPED_BYTE_MAX:
            out.append(f"\\x{cp - 0xDC00:02x}")
        elif unicodedata.category(c).startswith("C"):
            out.append(f"\\u{cp:04x}")
        else:
            out.append(c)
    return "".join(out)
