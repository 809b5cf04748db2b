#!/usr/bin/env python3
"""
iso_bitmap.py - Primary bitmap decoding

A primary bitmap is 16 hex characters (8 bytes). Each character expands to
4 presence flags, most significant bit first, giving 64 flags where index 0
is field 1 (secondary bitmap flag, never inspected) and index 63 is field 64.
"""

import re
from typing import List, Sequence, Tuple


BITMAP_HEX_LENGTH = 16
BITMAP_BITS = BITMAP_HEX_LENGTH * 4

_HEX_RE = re.compile(r'[0-9A-F]+')


def decode_bitmap(bitmap_hex: str) -> Tuple[bool, ...]:
    """
    Expand a 16-character hex bitmap into 64 presence flags.

    Raises:
        ValueError: if the input is not exactly 16 hex characters
    """
    text = bitmap_hex.upper()
    if len(text) != BITMAP_HEX_LENGTH or not _HEX_RE.fullmatch(text):
        raise ValueError(f"Bitmap must be {BITMAP_HEX_LENGTH} hex characters, got {bitmap_hex!r}")

    flags = []
    for char in text:
        nibble = int(char, 16)
        for shift in (3, 2, 1, 0):
            flags.append(bool(nibble >> shift & 1))
    return tuple(flags)


def present_fields(flags: Sequence[bool]) -> List[int]:
    """Field numbers 2..64 whose flag is set. Field 1 is skipped."""
    return [index + 1 for index in range(1, len(flags)) if flags[index]]


def bitmap_to_binary(flags: Sequence[bool]) -> str:
    """Render flags as a '0'/'1' string, bit 1 first."""
    return ''.join('1' if flag else '0' for flag in flags)
