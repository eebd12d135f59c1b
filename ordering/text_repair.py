"""
Recovery of mis-decoded bilingual product names.

Older catalog imports stored some Chinese names with the wrong decoding:
UTF-8 bytes read back as cp1252/latin-1 ("ä¸­æ–‡"), or UTF-16 text with its
byte order swapped.  repair_text() tries to undo those mistakes and only
accepts a candidate that actually contains CJK characters; anything else is
returned untouched.
"""
import logging
import unicodedata
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# (start, end) inclusive code point ranges counted as CJK
_CJK_RANGES = (
    (0x3000, 0x303F),    # CJK symbols and punctuation
    (0x3400, 0x4DBF),    # Extension A
    (0x4E00, 0x9FFF),    # Unified ideographs
    (0xF900, 0xFAFF),    # Compatibility ideographs
    (0xFF00, 0xFFEF),    # Half/full-width forms
    (0x20000, 0x2FA1F),  # Extensions B-F, compatibility supplement
)


def is_cjk(char: str) -> bool:
    cp = ord(char)
    return any(start <= cp <= end for start, end in _CJK_RANGES)


def contains_cjk(text: str) -> bool:
    return any(is_cjk(c) for c in text)


def _utf8_read_as(encoding: str) -> Callable[[str], str]:
    def _undo(text: str) -> str:
        return text.encode(encoding).decode("utf-8")
    return _undo


def _swap_utf16_byte_order(text: str) -> str:
    # Swapped CJK never lands in the Latin-1 block; text that has Latin-1
    # characters was written with the right byte order.
    if any(ord(c) < 0x100 for c in text):
        return text
    return text.encode("utf-16-le").decode("utf-16-be")


_CANDIDATES: tuple[tuple[str, Callable[[str], str]], ...] = (
    ("utf-8 as cp1252", _utf8_read_as("cp1252")),
    ("utf-8 as latin-1", _utf8_read_as("latin-1")),
    ("utf-16 byte swap", _swap_utf16_byte_order),
)


def _is_plausible(text: str) -> bool:
    if not contains_cjk(text):
        return False
    for c in text:
        if c == "�":
            return False
        category = unicodedata.category(c)
        if category in ("Cc", "Cs", "Co", "Cn") and c not in "\t\n":
            return False
    return True


def repair_text(value: Optional[str]) -> Optional[str]:
    """Return *value* with a known mis-decoding undone, or *value* itself."""
    if not value or value.isascii() or contains_cjk(value):
        return value

    for label, undo in _CANDIDATES:
        try:
            candidate = undo(value)
        except (UnicodeEncodeError, UnicodeDecodeError):
            continue
        if _is_plausible(candidate):
            logger.debug("Repaired text via %s: %r -> %r", label, value, candidate)
            return candidate

    return value
