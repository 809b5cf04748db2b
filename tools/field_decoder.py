#!/usr/bin/env python3
"""
field_decoder.py - Data element extraction

Given a message, a cursor position and an encoding class, extract one data
element's value and compute where the next element starts.

Field payloads are taken verbatim from the message text. Only the bitmap is
hex-decoded; nothing here reinterprets payload characters as hex bytes.

Value extraction (decode_at) and cursor advance (next_position) are kept
apart: the advance logic knows how to skip 'an' fields, value extraction
does not implement them and reports UNSUPPORTED_ENCODING.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from field_catalog import EncodingClass


class ErrorKind(Enum):
    EMPTY_MESSAGE = 'EmptyMessage'
    INVALID_HEX_FORMAT = 'InvalidHexFormat'
    MESSAGE_TOO_SHORT = 'MessageTooShort'
    INSUFFICIENT_DATA = 'InsufficientData'
    INVALID_LENGTH_PREFIX = 'InvalidLengthPrefix'
    UNSUPPORTED_ENCODING = 'UnsupportedEncoding'
    INTERNAL_ERROR = 'InternalError'


@dataclass(frozen=True)
class DecodeError:
    """A decode failure and its report text."""
    kind: ErrorKind
    reason: str

    def to_dict(self):
        return {'kind': self.kind.value, 'reason': self.reason}


@dataclass(frozen=True)
class FieldResult:
    """Outcome of decoding one data element."""
    value: Optional[str] = None
    next_position: Optional[int] = None
    error: Optional[DecodeError] = None

    @property
    def success(self) -> bool:
        return self.error is None


# Length-prefix width per variable encoding
PREFIX_WIDTHS = {
    EncodingClass.SHORT_VARIABLE: 2,
    EncodingClass.LONG_VARIABLE: 3,
}

# Encodings whose value is max_length characters taken as-is
FIXED_LABELS = {
    EncodingClass.FIXED_NUMERIC: 'numeric field',
    EncodingClass.FIXED_ALPHANUMERIC_SPECIAL: 'ans field',
}


def _tag(encoding: Union[EncodingClass, str]) -> str:
    if isinstance(encoding, EncodingClass):
        return encoding.tag
    return str(encoding)


def _coerce(encoding: Union[EncodingClass, str]):
    """Map a raw catalog tag to its EncodingClass; unknown tags pass through."""
    if isinstance(encoding, EncodingClass):
        return encoding
    try:
        return EncodingClass(encoding)
    except ValueError:
        return encoding


def _fail(kind: ErrorKind, reason: str) -> FieldResult:
    return FieldResult(error=DecodeError(kind, reason))


def _parse_length_prefix(prefix: str) -> Optional[int]:
    """Decimal length prefix, or None when it is not all ASCII digits."""
    if prefix.isascii() and prefix.isdigit():
        return int(prefix, 10)
    return None


def _decode_variable(message: str, start: int, width: int, tag: str) -> FieldResult:
    if start + width > len(message):
        return _fail(ErrorKind.INSUFFICIENT_DATA, f"Insufficient data for {tag} length")

    prefix = message[start:start + width]
    length = _parse_length_prefix(prefix)
    if length is None:
        return _fail(ErrorKind.INVALID_LENGTH_PREFIX, f"Invalid {tag} length format: {prefix}")

    content_start = start + width
    if content_start + length > len(message):
        reason = f"Insufficient data for {tag} content"
        if width == 2:
            reason += f" (need {length} chars)"
        return _fail(ErrorKind.INSUFFICIENT_DATA, reason)

    return FieldResult(value=message[content_start:content_start + length])


def _decode_fixed(message: str, start: int, length: int, label: str) -> FieldResult:
    if start + length > len(message):
        return _fail(ErrorKind.INSUFFICIENT_DATA, f"Insufficient data for {label}")
    return FieldResult(value=message[start:start + length])


def next_position(message: str, start: int,
                  encoding: Union[EncodingClass, str], max_length: int) -> int:
    """
    Cursor position just past the field starting at `start`.

    Variable fields read their decimal prefix; fixed fields (including 'an')
    skip max_length. An unreadable prefix or unknown encoding leaves the
    cursor where it was.
    """
    encoding = _coerce(encoding)
    width = PREFIX_WIDTHS.get(encoding)
    if width is not None:
        length = _parse_length_prefix(message[start:start + width])
        if length is None or start + width > len(message):
            return start
        return start + width + length

    if encoding in FIXED_LABELS or encoding is EncodingClass.ALPHANUMERIC:
        return start + max_length

    return start


def decode_at(message: str, start: int,
              encoding: Union[EncodingClass, str], max_length: int) -> FieldResult:
    """
    Decode the data element starting at `start`.

    Returns a FieldResult holding either the value and next cursor position
    or a DecodeError. Never raises for malformed data.
    """
    encoding = _coerce(encoding)
    width = PREFIX_WIDTHS.get(encoding)
    if width is not None:
        result = _decode_variable(message, start, width, _tag(encoding))
    elif encoding in FIXED_LABELS:
        result = _decode_fixed(message, start, max_length, FIXED_LABELS[encoding])
    else:
        return _fail(ErrorKind.UNSUPPORTED_ENCODING, f"Unknown field type: {_tag(encoding)}")

    if not result.success:
        return result
    return FieldResult(
        value=result.value,
        next_position=next_position(message, start, encoding, max_length),
    )
