#!/usr/bin/env python3
"""
validate_catalog.py - Validate a field catalog and run its test vectors

Usage:
    python tools/validate_catalog.py catalog.yaml
    python tools/validate_catalog.py catalog.yaml --verbose
    python tools/validate_catalog.py catalog.yaml --json

Test vector format:
    test_vectors:
      - name: network_response
        description: Optional text
        message: "08100220000002000000112309023307315600"
        expected: "MTI: 0810, Bitmap: ..."      # full report, or
        fields: {7: "1123090233", 11: "073156"}  # decoded values subset
"""

import argparse
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml

sys.path.insert(0, str(Path(__file__).parent))
from field_catalog import CatalogError, catalog_from_dict, validate_catalog_structure
from iso8583_parser import Iso8583Parser


@dataclass
class VectorResult:
    """Result of a single test vector."""
    name: str
    passed: bool
    description: str = ""
    message: str = ""
    expected: Any = None
    actual: str = ""
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'passed': self.passed,
            'description': self.description,
            'message': self.message,
            'expected': self.expected,
            'actual': self.actual,
            'errors': self.errors,
        }


@dataclass
class ValidationResult:
    """Result of catalog validation."""
    catalog_valid: bool
    catalog_errors: List[str] = field(default_factory=list)
    vector_results: List[VectorResult] = field(default_factory=list)

    @property
    def vectors_passed(self) -> int:
        return sum(1 for v in self.vector_results if v.passed)

    @property
    def vectors_failed(self) -> int:
        return sum(1 for v in self.vector_results if not v.passed)

    @property
    def total_vectors(self) -> int:
        return len(self.vector_results)

    @property
    def all_passed(self) -> bool:
        return self.catalog_valid and self.vectors_failed == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'catalog_valid': self.catalog_valid,
            'catalog_errors': self.catalog_errors,
            'vectors_passed': self.vectors_passed,
            'vectors_failed': self.vectors_failed,
            'total_vectors': self.total_vectors,
            'all_passed': self.all_passed,
            'vector_results': [v.to_dict() for v in self.vector_results],
        }


def run_test_vector(parser: Iso8583Parser, tv: Dict[str, Any], index: int) -> VectorResult:
    """Decode one vector's message and compare against its expectations."""
    result = VectorResult(
        name=tv.get('name', f'vector_{index}'),
        passed=False,
        description=tv.get('description', ''),
        message=tv['message'],
    )

    if 'expected' not in tv and 'fields' not in tv:
        result.errors.append("Vector has neither 'expected' nor 'fields'")
        return result

    decoded = parser.decode(result.message)
    result.actual = decoded.report()

    if 'expected' in tv:
        result.expected = tv['expected']
        if result.actual != tv['expected']:
            result.errors.append(f"report mismatch: expected '{tv['expected']}'")

    if 'fields' in tv:
        values = decoded.values
        expected_fields = tv['fields'] or {}
        if result.expected is None:
            result.expected = expected_fields
        for number, expected_value in expected_fields.items():
            actual_value = values.get(number)
            if actual_value is None:
                result.errors.append(f"DE{number:03d}: missing from output")
            elif actual_value != str(expected_value):
                result.errors.append(
                    f"DE{number:03d}: expected '{expected_value}', got '{actual_value}'")

    result.passed = len(result.errors) == 0
    return result


def validate_catalog(data: Any) -> ValidationResult:
    """Validate catalog structure and run all test vectors."""
    result = ValidationResult(catalog_valid=True)

    structure_errors = validate_catalog_structure(data)
    if structure_errors:
        result.catalog_valid = False
        result.catalog_errors = structure_errors
        return result

    try:
        catalog = catalog_from_dict(data)
    except CatalogError as e:
        result.catalog_valid = False
        result.catalog_errors = e.errors
        return result

    parser = Iso8583Parser(catalog)
    for i, tv in enumerate(data.get('test_vectors') or []):
        result.vector_results.append(run_test_vector(parser, tv, i))

    return result


def print_results(result: ValidationResult, verbose: bool = False):
    """Print validation results to console."""
    if result.catalog_valid:
        print("Catalog: VALID")
    else:
        print("Catalog: INVALID")
        for error in result.catalog_errors:
            print(f"  - {error}")
        return

    if result.total_vectors == 0:
        print("\nNo test vectors found in catalog.")
        return

    print(f"\nTest Vectors: {result.vectors_passed}/{result.total_vectors} passed")
    print("-" * 50)

    for vr in result.vector_results:
        status = "PASS" if vr.passed else "FAIL"
        symbol = "✓" if vr.passed else "✗"
        print(f"{symbol} {vr.name}: {status}")

        if verbose or not vr.passed:
            if vr.description:
                print(f"    Description: {vr.description}")
            if vr.message:
                print(f"    Message: {vr.message}")
            for error in vr.errors:
                print(f"    ERROR: {error}")
            print(f"    Actual: {vr.actual}")
            print()

    print("-" * 50)
    if result.all_passed:
        print(f"PASSED: All {result.total_vectors} vectors passed")
    else:
        print(f"FAILED: {result.vectors_failed} of {result.total_vectors} vectors failed")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Validate an ISO 8583 field catalog and run its test vectors'
    )
    parser.add_argument('catalog', help='Path to catalog YAML file')
    parser.add_argument('-v', '--verbose', action='store_true',
                       help='Show detailed output for all vectors')
    parser.add_argument('--json', action='store_true',
                       help='Output results as JSON')
    args = parser.parse_args(argv)

    try:
        with open(args.catalog) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        print(f"Error loading catalog: {e}", file=sys.stderr)
        return 1

    result = validate_catalog(data)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(f"Validating: {args.catalog}")
        print("=" * 50)
        print_results(result, args.verbose)

    return 0 if result.all_passed else 1


if __name__ == '__main__':
    sys.exit(main())
