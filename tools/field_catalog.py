#!/usr/bin/env python3
"""
field_catalog.py - ISO 8583 data element definitions

Static table mapping a data element number to its encoding class, maximum
length and a human label. The default catalog is built once at import and
is read-only afterwards; custom catalogs can be loaded from YAML files with
the same shape the default one dumps to.

Catalog YAML format:
    name: acquirer_profile
    fields:
      - {number: 2, type: LLVAR, length: 19, label: Primary Account Number (PAN)}
      - {number: 3, type: n, length: 6, label: Processing Code}
    test_vectors:
      - name: network_response
        message: "08100220000002000000112309023307315600"
        expected: "MTI: 0810, ..."

Usage:
    from field_catalog import DEFAULT_CATALOG

    definition = DEFAULT_CATALOG.lookup(3)
    catalog = load_catalog('profile.yaml')
"""

import yaml
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional


MIN_FIELD_NUMBER = 2
MAX_FIELD_NUMBER = 64


class EncodingClass(Enum):
    """Encoding classes, valued by their catalog tag."""
    FIXED_NUMERIC = 'n'
    FIXED_ALPHANUMERIC_SPECIAL = 'ans'
    SHORT_VARIABLE = 'LLVAR'
    LONG_VARIABLE = 'LLLVAR'
    # Catalogued for fields 37-40 but not decodable
    ALPHANUMERIC = 'an'

    @property
    def tag(self) -> str:
        return self.value


class CatalogError(ValueError):
    """Raised when a catalog definition is malformed."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid field catalog: " + "; ".join(self.errors))


@dataclass(frozen=True)
class FieldDefinition:
    """One catalogued data element."""
    number: int
    encoding: EncodingClass
    max_length: int
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'number': self.number,
            'type': self.encoding.tag,
            'length': self.max_length,
            'label': self.label,
        }


class FieldCatalog:
    """
    Read-only mapping of field number to FieldDefinition.

    At most one definition per number, numbers within 2..64.
    """

    def __init__(self, definitions, name: str = 'iso8583'):
        table = {}
        errors = []
        for definition in definitions:
            if not MIN_FIELD_NUMBER <= definition.number <= MAX_FIELD_NUMBER:
                errors.append(f"field {definition.number}: number outside "
                              f"{MIN_FIELD_NUMBER}-{MAX_FIELD_NUMBER}")
                continue
            if definition.number in table:
                errors.append(f"field {definition.number}: duplicate definition")
                continue
            table[definition.number] = definition
        if errors:
            raise CatalogError(errors)

        self.name = name
        self._fields: Mapping[int, FieldDefinition] = MappingProxyType(
            dict(sorted(table.items()))
        )

    @property
    def fields(self) -> Mapping[int, FieldDefinition]:
        return self._fields

    def lookup(self, number: int) -> Optional[FieldDefinition]:
        """Return the definition for a field number, or None if uncatalogued."""
        return self._fields.get(number)

    def __contains__(self, number) -> bool:
        return number in self._fields

    def __iter__(self) -> Iterator[FieldDefinition]:
        return iter(self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self):
        return f"<FieldCatalog name={self.name} fields={len(self)}>"


def _field(number: int, tag: str, length: int, label: str) -> FieldDefinition:
    return FieldDefinition(number, EncodingClass(tag), length, label)


DEFAULT_CATALOG = FieldCatalog([
    _field(2, 'LLVAR', 19, 'Primary Account Number (PAN)'),
    _field(3, 'n', 6, 'Processing Code'),
    _field(4, 'n', 12, 'Transaction Amount'),
    _field(5, 'n', 12, 'Amount, settlement'),
    _field(6, 'n', 12, 'Amount, cardholder billing'),
    _field(7, 'n', 10, 'Transmission Date & Time'),
    _field(8, 'n', 8, 'Amount, cardholder billing fee'),
    _field(9, 'n', 8, 'Conversion rate, settlement'),
    _field(10, 'n', 8, 'Conversion rate, cardholder billing'),
    _field(11, 'n', 6, 'System Trace Audit Number (STAN)'),
    _field(12, 'n', 6, 'Local Transaction Time'),
    _field(13, 'n', 4, 'Local Transaction Date'),
    _field(14, 'n', 4, 'Expiration Date'),
    _field(15, 'n', 4, 'Settlement date'),
    _field(16, 'n', 4, 'Currency conversion date'),
    _field(17, 'n', 4, 'Capture date'),
    _field(18, 'n', 4, 'Merchant Category Code'),
    _field(19, 'n', 3, 'Acquiring institution (country code)'),
    _field(20, 'n', 3, 'PAN extended (country code)'),
    _field(21, 'n', 3, 'Forwarding institution (country code)'),
    _field(22, 'n', 3, 'POS Entry Mode'),
    _field(23, 'n', 3, 'Application PAN sequence number'),
    _field(24, 'n', 3, 'Function code'),
    _field(25, 'n', 2, 'POS condition code'),
    _field(26, 'n', 2, 'POS capture code'),
    _field(27, 'n', 1, 'Authorizing identification response length'),
    _field(32, 'LLVAR', 11, 'Acquiring Institution Code'),
    _field(33, 'LLVAR', 11, 'Forwarding institution identification code'),
    _field(34, 'LLVAR', 28, 'Primary account number, extended'),
    _field(35, 'LLVAR', 37, 'Track 2 Data'),
    _field(36, 'LLLVAR', 104, 'Track 3 data'),
    _field(37, 'an', 12, 'Retrieval Reference Number'),
    _field(38, 'an', 6, 'Authorization Code'),
    _field(39, 'an', 2, 'Response Code'),
    _field(40, 'an', 3, 'Service restriction code'),
    _field(41, 'ans', 8, 'Terminal ID'),
    _field(42, 'ans', 15, 'Card acceptor identification code'),
    _field(43, 'ans', 40, 'Card Acceptor Name/Location'),
    _field(44, 'LLVAR', 25, 'Additional response data'),
    _field(45, 'LLVAR', 76, 'Track 1 data'),
    _field(46, 'LLLVAR', 999, 'Additional data (ISO)'),
    _field(47, 'LLLVAR', 999, 'Additional data (national)'),
    _field(48, 'LLLVAR', 999, 'Additional data (private)'),
    _field(49, 'n', 3, 'Currency code, transaction'),
    _field(50, 'n', 3, 'Currency code, settlement'),
    _field(51, 'n', 3, 'Currency code, cardholder billing'),
    _field(53, 'n', 16, 'Security related control information'),
    _field(54, 'LLLVAR', 120, 'Additional amounts'),
    _field(55, 'LLLVAR', 999, 'ICC Data'),
    _field(60, 'LLLVAR', 999, 'Reserved (national)'),
    _field(61, 'LLLVAR', 999, 'Reserved (private)'),
    _field(62, 'LLLVAR', 999, 'Reserved (private)'),
    _field(63, 'LLLVAR', 999, 'Reserved (private)'),
], name='iso8583')


def lookup(number: int) -> Optional[FieldDefinition]:
    """Look up a field in the default catalog."""
    return DEFAULT_CATALOG.lookup(number)


# =============================================================================
# YAML catalogs
# =============================================================================

KNOWN_TAGS = {e.tag for e in EncodingClass}


def validate_catalog_structure(data: Any) -> List[str]:
    """Check catalog document structure. Returns a list of problems."""
    errors = []

    if not isinstance(data, dict):
        return ["Catalog must be a mapping"]

    fields = data.get('fields')
    if not isinstance(fields, list) or not fields:
        return ["Missing or empty 'fields' list"]

    seen = set()
    for i, entry in enumerate(fields):
        where = f"fields[{i}]"
        if not isinstance(entry, dict):
            errors.append(f"{where}: must be a mapping")
            continue

        number = entry.get('number')
        # bool is an int subclass
        if not isinstance(number, int) or isinstance(number, bool):
            errors.append(f"{where}: 'number' must be an integer")
        elif not MIN_FIELD_NUMBER <= number <= MAX_FIELD_NUMBER:
            errors.append(f"{where}: number {number} outside "
                          f"{MIN_FIELD_NUMBER}-{MAX_FIELD_NUMBER}")
        elif number in seen:
            errors.append(f"{where}: duplicate field number {number}")
        else:
            seen.add(number)

        tag = entry.get('type')
        if tag not in KNOWN_TAGS:
            errors.append(f"{where}: unknown type {tag!r} "
                          f"(expected one of {sorted(KNOWN_TAGS)})")

        length = entry.get('length')
        if not isinstance(length, int) or isinstance(length, bool) or length <= 0:
            errors.append(f"{where}: 'length' must be a positive integer")

        label = entry.get('label', '')
        if not isinstance(label, str):
            errors.append(f"{where}: 'label' must be a string")

    if data.get('test_vectors') is not None:
        errors.extend(_validate_test_vectors(data['test_vectors']))

    return errors


def _validate_test_vectors(vectors: Any) -> List[str]:
    if not isinstance(vectors, list):
        return ["'test_vectors' must be a list"]

    errors = []
    for i, tv in enumerate(vectors):
        where = f"test_vectors[{i}]"
        if not isinstance(tv, dict):
            errors.append(f"{where}: must be a mapping")
            continue

        if not isinstance(tv.get('message'), str):
            errors.append(f"{where}: 'message' must be a string")
        if 'expected' in tv and not isinstance(tv['expected'], str):
            errors.append(f"{where}: 'expected' must be a string")

        expected_fields = tv.get('fields')
        if expected_fields is None:
            continue
        if not isinstance(expected_fields, dict):
            errors.append(f"{where}: 'fields' must be a mapping")
            continue
        for number in expected_fields:
            if not isinstance(number, int) or isinstance(number, bool):
                errors.append(f"{where}: field key {number!r} must be an integer")

    return errors


def catalog_from_dict(data: Dict[str, Any]) -> FieldCatalog:
    """Build a FieldCatalog from a parsed catalog document."""
    errors = validate_catalog_structure(data)
    if errors:
        raise CatalogError(errors)

    definitions = [
        FieldDefinition(
            number=entry['number'],
            encoding=EncodingClass(entry['type']),
            max_length=entry['length'],
            label=entry.get('label', ''),
        )
        for entry in data['fields']
    ]
    return FieldCatalog(definitions, name=data.get('name', 'custom'))


def load_catalog_document(path) -> Dict[str, Any]:
    """Read a catalog YAML file without building it."""
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        raise CatalogError([f"{path}: empty catalog file"])
    return data


def load_catalog(path) -> FieldCatalog:
    """Load and validate a catalog YAML file."""
    return catalog_from_dict(load_catalog_document(path))


def dump_catalog(catalog: FieldCatalog = DEFAULT_CATALOG) -> Dict[str, Any]:
    """Serialize a catalog to the YAML document shape."""
    return {
        'name': catalog.name,
        'fields': [definition.to_dict() for definition in catalog],
    }


if __name__ == '__main__':
    print(yaml.safe_dump(dump_catalog(), sort_keys=False), end='')
