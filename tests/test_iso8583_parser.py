"""
Tests for the message walker and report formatter.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / 'tools'))

import iso8583_parser
from field_catalog import load_catalog
from field_decoder import ErrorKind
from iso8583_parser import (
    DecodedField, Iso8583Parser, ParseState,
    decode_message, is_error_report, parse_message,
)
from message_factory import NETWORK_RESPONSE, NETWORK_RESPONSE_REPORT


EMPTY = "ERROR: Empty ISO 8583 message"
INVALID_HEX = "ERROR: Invalid hex format. Only 0-9 and A-F characters allowed"
TOO_SHORT = "ERROR: Message too short. Minimum 20 hex characters required"


class TestHeaderValidation:

    @pytest.mark.parametrize("text", [None, "", "   ", "\t\n", "\x00 \x1f"])
    def test_empty(self, text):
        assert parse_message(text) == EMPTY
        assert decode_message(text).error.kind is ErrorKind.EMPTY_MESSAGE

    def test_non_hex(self):
        assert parse_message("GGGG0220000002000000") == INVALID_HEX

    def test_non_hex_in_body(self):
        assert parse_message("08100220000002000000Z") == INVALID_HEX

    def test_too_short(self):
        assert parse_message("081002200000") == TOO_SHORT
        result = decode_message("081002200000")
        assert result.error.kind is ErrorKind.MESSAGE_TOO_SHORT
        assert result.mti is None
        assert result.state is ParseState.FAILED

    def test_hex_checked_before_length(self):
        assert parse_message("08X0") == INVALID_HEX

    def test_whitespace_and_case_normalized(self):
        text = "0810 0220 0000 0200 0000\n1123090233 073156\t00"
        assert parse_message(text) == NETWORK_RESPONSE_REPORT
        assert parse_message(NETWORK_RESPONSE.lower()) == NETWORK_RESPONSE_REPORT

    @pytest.mark.parametrize("text", ["\u00a0", "\u2003", "\u3000 "])
    def test_unicode_space_is_not_blank(self, text):
        assert parse_message(text) == INVALID_HEX

    def test_unicode_space_inside_message(self):
        assert parse_message("0810\u00a0" + NETWORK_RESPONSE[4:]) == INVALID_HEX

    def test_separator_characters_rejected(self):
        assert parse_message("0100\x1c0000000000000000") == INVALID_HEX
        assert parse_message("0100\x1f0000000000000000") == INVALID_HEX


class TestWalking:

    def test_network_response(self):
        assert parse_message(NETWORK_RESPONSE) == NETWORK_RESPONSE_REPORT

    def test_network_response_structure(self):
        result = decode_message(NETWORK_RESPONSE)
        assert result.mti == "0810"
        assert result.bitmap == "0220000002000000"
        assert result.values == {7: "1123090233", 11: "073156"}
        assert result.error.kind is ErrorKind.UNSUPPORTED_ENCODING
        assert result.error_field == 39
        assert result.state is ParseState.FAILED
        assert result.chars_consumed == 36
        assert not result.success

    def test_header_only(self):
        """Exactly 20 characters with an empty bitmap."""
        result = decode_message("01000000000000000000")
        assert result.success
        assert result.fields == []
        assert result.report() == "MTI: 0100, Bitmap: 0000000000000000"

    def test_trailing_characters_ignored(self):
        report = parse_message("01000000000000000000ABCD")
        assert report == "MTI: 0100, Bitmap: 0000000000000000"

    def test_mti_not_validated(self):
        assert parse_message("FFFF0000000000000000").startswith("MTI: FFFF,")

    def test_purchase(self, message_factory):
        fields = {2: "4111111111111111", 3: "000000", 4: "000000010000"}
        text = message_factory.build("0200", fields)

        result = decode_message(text)

        assert result.success
        assert result.report() == message_factory.expected_report("0200", fields)
        assert result.chars_consumed == len(text)
        assert [f.label for f in result.fields] == [
            'Primary Account Number (PAN)', 'Processing Code', 'Transaction Amount']

    def test_uncatalogued_field_skipped(self):
        """DE28 is set but has no definition; nothing is consumed for it."""
        report = parse_message("0200" "2000001000000000" "123456")
        assert report == "MTI: 0200, Bitmap: 2000001000000000, DE003: 123456"

    def test_secondary_bitmap_flag_ignored(self):
        report = parse_message("0200" "C000000000000000" "03ABC")
        assert report == "MTI: 0200, Bitmap: C000000000000000, DE002: ABC"

    def test_variable_after_fixed(self):
        report = parse_message("0200" "0000000000008200" "978" "006" "9F0206")
        assert report == "MTI: 0200, Bitmap: 0000000000008200, DE049: 978, DE055: 9F0206"


class TestFieldErrors:
    """The first failing field stops the walk."""

    def test_message_exhausted(self):
        report = parse_message("0200" "3000000000000000" "123456")
        assert report == ("MTI: 0200, Bitmap: 3000000000000000, "
                          "DE003: 123456, DE004: ERROR - Insufficient data")

    def test_exhausted_before_alphanumeric(self):
        """Running out of data is reported before the encoding is looked at."""
        report = parse_message("0810" "0220000002000000" "1123090233" "073156")
        assert report.endswith("DE039: ERROR - Insufficient data")

    def test_alphanumeric_halts(self):
        text = "0200" "0000000008800000" "ABCDEF012345" "0000AAAA"
        report = parse_message(text)
        assert report == ("MTI: 0200, Bitmap: 0000000008800000, "
                          "DE037: ERROR - Unknown field type: an")
        assert "DE041" not in report

    def test_short_llvar(self):
        result = decode_message("0200" "4000000000000000" "1941111")
        assert result.report() == ("MTI: 0200, Bitmap: 4000000000000000, "
                                   "DE002: ERROR - Insufficient data for LLVAR content (need 19 chars)")
        assert result.error.kind is ErrorKind.INSUFFICIENT_DATA
        assert result.chars_consumed == 20

    def test_invalid_length_prefix(self):
        report = parse_message("0200" "4000000000000000" "1A123")
        assert report.endswith("DE002: ERROR - Invalid LLVAR length format: 1A")

    def test_fields_before_error_kept(self, message_factory):
        text = message_factory.build("0200", {3: "000000", 4: "000000010000"})[:-4]
        report = parse_message(text)
        assert "DE003: 000000" in report
        assert report.endswith("DE004: ERROR - Insufficient data for numeric field")


class TestNeverRaises:

    def test_non_string_input(self):
        assert parse_message(12345).startswith("ERROR:")

    def test_internal_failure(self, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(iso8583_parser, 'decode_at', boom)

        result = decode_message(NETWORK_RESPONSE)
        assert result.error.kind is ErrorKind.INTERNAL_ERROR
        assert result.report() == "ERROR: Failed to parse ISO 8583 message - boom"


class TestCustomCatalog:

    def test_sample_catalog(self, sample_catalog_path):
        parser = Iso8583Parser(load_catalog(sample_catalog_path))
        report = parser.parse_message(NETWORK_RESPONSE)
        assert report == ("MTI: 0810, Bitmap: 0220000002000000, DE007: 1123090233, "
                          "DE011: 073156, DE039: 00")

    def test_catalog_drives_skipping(self, sample_catalog_path):
        """DE5 is catalogued by default but not in the sample profile."""
        text = "0200" "2800000000000000" "123456"
        parser = Iso8583Parser(load_catalog(sample_catalog_path))
        assert parser.parse_message(text) == "MTI: 0200, Bitmap: 2800000000000000, DE003: 123456"
        assert parse_message(text).endswith("DE005: ERROR - Insufficient data")


class TestReportHelpers:

    def test_field_tag(self):
        assert DecodedField(7, "1123090233").tag == "DE007"
        assert DecodedField(55, "").to_report() == "DE055: "

    def test_is_error_report(self):
        assert is_error_report(TOO_SHORT)
        assert is_error_report(NETWORK_RESPONSE_REPORT)
        assert not is_error_report("MTI: 0100, Bitmap: 0000000000000000")

    def test_to_dict(self):
        data = decode_message(NETWORK_RESPONSE).to_dict()
        assert data['mti'] == "0810"
        assert len(data['bitmap_binary']) == 64
        assert [i + 1 for i, bit in enumerate(data['bitmap_binary']) if bit == '1'] == [7, 11, 39]
        assert data['success'] is False
        assert data['state'] == 'failed'
        assert data['fields'][0] == {
            'number': 7, 'label': 'Transmission Date & Time', 'value': '1123090233'}
        assert data['error'] == {
            'kind': 'UnsupportedEncoding', 'reason': 'Unknown field type: an', 'field': 39}
        assert data['report'] == NETWORK_RESPONSE_REPORT

    def test_to_dict_header_error(self):
        data = decode_message("081002200000").to_dict()
        assert data['bitmap'] is None
        assert data['bitmap_binary'] is None
        assert data['report'] == TOO_SHORT
