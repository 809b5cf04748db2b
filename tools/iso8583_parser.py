#!/usr/bin/env python3
"""
iso8583_parser.py - ISO 8583 message walker and report formatter

Decodes a single concatenated hex-text ISO 8583 message:

    MTI (4 chars) | primary bitmap (16 hex chars) | data elements ...

and renders a one-line report:

    MTI: 0200, Bitmap: 7000000000000000, DE002: 4111111111111111, DE003: 000000

Header problems (empty, non-hex, too short) produce a report starting with
"ERROR:". A failing data element is reported as "DE<nnn>: ERROR - <reason>"
after any elements already decoded, and nothing after it is attempted.
parse_message() never raises; callers look for the ERROR marker.

Known limitation: only the primary bitmap is read. When bit 1 (secondary
bitmap present) is set, the secondary bitmap is not consumed and every
following element is read from the wrong offset.

Usage:
    from iso8583_parser import Iso8583Parser, parse_message

    report = parse_message("08100220000002000000112309023307315600")

    parser = Iso8583Parser(catalog)
    result = parser.decode(text)
    if result.success:
        ...
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from field_catalog import DEFAULT_CATALOG, FieldCatalog
from field_decoder import DecodeError, ErrorKind, decode_at
from iso_bitmap import BITMAP_HEX_LENGTH, bitmap_to_binary, decode_bitmap, present_fields


log = logging.getLogger(__name__)

MTI_LENGTH = 4
HEADER_LENGTH = MTI_LENGTH + BITMAP_HEX_LENGTH

ERROR_PREFIX = "ERROR"

# ASCII whitespace only: space, \t, \n, \x0B, \f, \r
_WHITESPACE_RE = re.compile(r"\s", re.ASCII)
_HEX_RE = re.compile(r'[0-9A-F]+')

EMPTY_MESSAGE = "Empty ISO 8583 message"
INVALID_HEX = "Invalid hex format. Only 0-9 and A-F characters allowed"
TOO_SHORT = f"Message too short. Minimum {HEADER_LENGTH} hex characters required"


class ParseState(Enum):
    START = 'start'
    HEADER_PARSED = 'header_parsed'
    WALKING = 'walking'
    DONE = 'done'
    FAILED = 'failed'


@dataclass(frozen=True)
class DecodedField:
    """One successfully decoded data element."""
    number: int
    value: str
    label: str = ""

    @property
    def tag(self) -> str:
        return f"DE{self.number:03d}"

    def to_report(self) -> str:
        return f"{self.tag}: {self.value}"


@dataclass
class DecodedMessage:
    """Result of decoding one message."""
    mti: Optional[str] = None
    bitmap: Optional[str] = None
    fields: List[DecodedField] = field(default_factory=list)
    error: Optional[DecodeError] = None
    error_field: Optional[int] = None
    chars_consumed: int = 0
    state: ParseState = ParseState.START

    @property
    def success(self) -> bool:
        return self.state is ParseState.DONE

    @property
    def values(self) -> Dict[int, str]:
        return {f.number: f.value for f in self.fields}

    def report(self) -> str:
        """Render the one-line human-readable report."""
        if self.error is not None and self.error_field is None:
            return f"{ERROR_PREFIX}: {self.error.reason}"

        parts = [f"MTI: {self.mti}", f"Bitmap: {self.bitmap}"]
        parts.extend(f.to_report() for f in self.fields)
        if self.error is not None:
            parts.append(f"DE{self.error_field:03d}: {ERROR_PREFIX} - {self.error.reason}")
        return ", ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'mti': self.mti,
            'bitmap': self.bitmap,
            'bitmap_binary': (None if self.bitmap is None
                              else bitmap_to_binary(decode_bitmap(self.bitmap))),
            'success': self.success,
            'state': self.state.value,
            'fields': [
                {'number': f.number, 'label': f.label, 'value': f.value}
                for f in self.fields
            ],
            'error': None if self.error is None else {
                **self.error.to_dict(), 'field': self.error_field,
            },
            'chars_consumed': self.chars_consumed,
            'report': self.report(),
        }


def normalize_message(text: str) -> str:
    """Drop ASCII whitespace and uppercase."""
    return _WHITESPACE_RE.sub('', text).upper()


# C0 control characters and space
_TRIM_CHARS = "".join(chr(c) for c in range(0x21))


def trim(text: str) -> str:
    """Strip leading and trailing characters up to and including space."""
    return text.strip(_TRIM_CHARS)


class Iso8583Parser:
    """
    Walks an ISO 8583 message using a field catalog.

    Stateless between calls; one instance can be shared across threads.
    """

    def __init__(self, catalog: FieldCatalog = DEFAULT_CATALOG):
        self.catalog = catalog

    def _check_header(self, text) -> Tuple[Optional[str], Optional[DecodeError]]:
        if text is None or not trim(text):
            return None, DecodeError(ErrorKind.EMPTY_MESSAGE, EMPTY_MESSAGE)

        message = normalize_message(text)
        if not _HEX_RE.fullmatch(message):
            return None, DecodeError(ErrorKind.INVALID_HEX_FORMAT, INVALID_HEX)
        if len(message) < HEADER_LENGTH:
            return None, DecodeError(ErrorKind.MESSAGE_TOO_SHORT, TOO_SHORT)
        return message, None

    def _walk(self, message: str, flags) -> Tuple[List[DecodedField], int,
                                                  Optional[Tuple[int, DecodeError]]]:
        """
        Fold over present fields.

        Returns (decoded fields, cursor, failure) where failure is
        (field number, error) for the first field that could not be decoded.
        """
        decoded = []
        cursor = HEADER_LENGTH

        for number in present_fields(flags):
            definition = self.catalog.lookup(number)
            if definition is None:
                continue

            if cursor >= len(message):
                return decoded, cursor, (
                    number, DecodeError(ErrorKind.INSUFFICIENT_DATA, "Insufficient data"))

            result = decode_at(message, cursor, definition.encoding, definition.max_length)
            if not result.success:
                return decoded, cursor, (number, result.error)

            decoded.append(DecodedField(number, result.value, definition.label))
            cursor = result.next_position

        return decoded, cursor, None

    def decode(self, text: str) -> DecodedMessage:
        """Decode a message into a DecodedMessage. Never raises."""
        result = DecodedMessage()
        try:
            message, error = self._check_header(text)
            if error is not None:
                result.error = error
                result.state = ParseState.FAILED
                return result

            result.mti = message[:MTI_LENGTH]
            result.bitmap = message[MTI_LENGTH:HEADER_LENGTH]
            flags = decode_bitmap(result.bitmap)
            result.chars_consumed = HEADER_LENGTH
            result.state = ParseState.HEADER_PARSED

            result.state = ParseState.WALKING
            decoded, cursor, failure = self._walk(message, flags)
            result.fields = decoded
            result.chars_consumed = cursor

            if failure is not None:
                result.error_field, result.error = failure
                result.state = ParseState.FAILED
                log.debug("DE%03d failed at position %d: %s",
                          result.error_field, cursor, result.error.reason)
            else:
                result.state = ParseState.DONE
                if cursor < len(message):
                    log.debug("%d trailing characters after last data element",
                              len(message) - cursor)
        except Exception as e:
            log.exception("Unexpected failure decoding ISO 8583 message")
            result.error = DecodeError(
                ErrorKind.INTERNAL_ERROR, f"Failed to parse ISO 8583 message - {e}")
            result.error_field = None
            result.state = ParseState.FAILED

        return result

    def parse_message(self, text: str) -> str:
        """Decode a message and return its report line. Never raises."""
        try:
            return self.decode(text).report()
        except Exception as e:
            log.exception("Unexpected failure rendering ISO 8583 report")
            return f"{ERROR_PREFIX}: Failed to parse ISO 8583 message - {e}"


_default_parser = Iso8583Parser()


def parse_message(text: str) -> str:
    """Convenience function: report line using the default catalog."""
    return _default_parser.parse_message(text)


def decode_message(text: str) -> DecodedMessage:
    """Convenience function: structured result using the default catalog."""
    return _default_parser.decode(text)


def is_error_report(report: str) -> bool:
    """True when a report marks a header or field failure."""
    return report.startswith(ERROR_PREFIX) or f"{ERROR_PREFIX} - " in report


if __name__ == '__main__':
    # Demo
    print("=== ISO 8583 Parser Demo ===\n")

    samples = [
        "08100220000002000000112309023307315600",
        "0200" "7000000000000000" "164111111111111111" "000000" "000000010000",
        "081002200000",
        "GGGG0220000002000000",
    ]
    for sample in samples:
        print(f"Input:  {sample}")
        print(f"Result: {parse_message(sample)}\n")
