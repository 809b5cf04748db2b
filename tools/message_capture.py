#!/usr/bin/env python3
"""
message_capture.py - Detect ISO 8583 messages in free-text record fields

Record handlers feed a title/description pair through capture() to decide
whether one of them holds an ISO 8583 message. Two triggers exist:

    - auto-detection: either text looks like a message (MTI digit class plus
      hex density over the first 20 characters)
    - sentinel: the title is exactly ISO8583_PARSER and the description holds
      the message text

Usage:
    from message_capture import capture

    found = capture(title, description)
    if found:
        record.title = found.title
        record.iso8583 = found.raw
        record.iso8583_message = found.report
"""

import logging
from dataclasses import dataclass
from typing import Optional

from iso8583_parser import (
    HEADER_LENGTH, MTI_LENGTH, is_error_report, normalize_message, parse_message, trim,
)


log = logging.getLogger(__name__)

SENTINEL_TITLE = "ISO8583_PARSER"
AUTO_DETECTED = "Auto-detected ISO 8583 message"
AUTO_DETECTED_ON_UPDATE = "Auto-detected ISO 8583 message during update"

# Message classes 0-5, 8, 9 (6 and 7 are reserved by ISO)
MTI_FIRST_DIGITS = frozenset("01234589")

# At least 80% of the header must be hex
MIN_HEADER_HEX_CHARS = 16

_HEX_CHARS = frozenset("0123456789ABCDEF")


@dataclass(frozen=True)
class Capture:
    """Record values to store after a message was found."""
    title: Optional[str]
    description: Optional[str]
    raw: str
    report: str

    @property
    def success(self) -> bool:
        return not is_error_report(self.report)


def looks_like_iso8583(text: Optional[str]) -> bool:
    """Heuristic check that a free-text value is an ISO 8583 hex message."""
    if text is None or not trim(text):
        return False

    cleaned = trim(normalize_message(text))
    if len(cleaned) < HEADER_LENGTH:
        return False

    mti = cleaned[:MTI_LENGTH]
    if not (mti.isascii() and mti.isdigit()):
        return False
    if mti[0] not in MTI_FIRST_DIGITS:
        return False

    hex_chars = sum(1 for c in cleaned[:HEADER_LENGTH] if c in _HEX_CHARS)
    return hex_chars >= MIN_HEADER_HEX_CHARS


def _parse(raw: str, trigger: str) -> str:
    report = parse_message(raw)
    if is_error_report(report):
        log.warning("ISO 8583 %s capture failed: %s", trigger, report)
    else:
        log.info("ISO 8583 %s capture: %s", trigger, report)
    return report


def _auto_detect(title, description, on_update: bool) -> Optional[Capture]:
    if looks_like_iso8583(title):
        text = title
    elif looks_like_iso8583(description):
        text = description
    else:
        return None

    raw = trim(text)
    return Capture(
        title=SENTINEL_TITLE,
        description=AUTO_DETECTED_ON_UPDATE if on_update else AUTO_DETECTED,
        raw=raw,
        report=_parse(raw, "auto-detected"),
    )


def _sentinel(title, description) -> Optional[Capture]:
    if title != SENTINEL_TITLE or description is None:
        return None

    raw = trim(description)
    return Capture(
        title=title,
        description=description,
        raw=raw,
        report=_parse(raw, "sentinel"),
    )


def capture(title: Optional[str], description: Optional[str],
            sentinel_first: bool = False) -> Optional[Capture]:
    """
    Find an ISO 8583 message in a record's title/description.

    New records try auto-detection first; updates pass sentinel_first=True
    so an explicit ISO8583_PARSER title wins over detection.

    Returns:
        Capture with the values to store, or None if no trigger matched
    """
    if sentinel_first:
        return _sentinel(title, description) or _auto_detect(title, description, True)
    return _auto_detect(title, description, False) or _sentinel(title, description)


def reparse_raw(raw: Optional[str]) -> Optional[str]:
    """Report for a raw message value set directly on a record, if it looks like one."""
    if raw is None or not trim(raw):
        return None
    text = trim(raw)
    if not looks_like_iso8583(text):
        return None
    return _parse(text, "raw field")
