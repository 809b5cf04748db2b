#!/usr/bin/env python3
"""
decode_iso8583.py - Decode ISO 8583 hex messages from the command line

Usage:
    python tools/decode_iso8583.py 08100220000002000000112309023307315600
    python tools/decode_iso8583.py --file messages.txt
    cat messages.txt | python tools/decode_iso8583.py --file -
    python tools/decode_iso8583.py --catalog profile.yaml --format json MSG...

Exit code is 1 when any message fails to decode.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Iterable, List

import yaml

sys.path.insert(0, str(Path(__file__).parent))
from field_catalog import DEFAULT_CATALOG, CatalogError, load_catalog
from iso8583_parser import Iso8583Parser
from telemetry import configure_logging, default_log_level


log = logging.getLogger(__name__)


def read_messages(source) -> List[str]:
    """One message per non-blank line; '#' starts a comment line."""
    if source == '-':
        lines = sys.stdin.read().splitlines()
    else:
        with open(source) as f:
            lines = f.read().splitlines()
    return [line for line in lines if line.strip() and not line.lstrip().startswith('#')]


def render(results, fmt: str) -> str:
    if fmt == 'json':
        return json.dumps([r.to_dict() for r in results], indent=2)
    if fmt == 'yaml':
        return yaml.safe_dump([r.to_dict() for r in results], sort_keys=False).rstrip()
    return "\n".join(r.report() for r in results)


def decode_all(parser: Iso8583Parser, messages: Iterable[str]):
    results = []
    for message in messages:
        result = parser.decode(message)
        if not result.success:
            log.info("Message failed to decode: %s", result.report())
        results.append(result)
    return results


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Decode ISO 8583 hex messages'
    )
    parser.add_argument('messages', nargs='*', help='Hex message text')
    parser.add_argument('-f', '--file',
                       help="Read messages from file, one per line ('-' for stdin)")
    parser.add_argument('-c', '--catalog',
                       help='Field catalog YAML (default: built-in ISO 8583 catalog)')
    parser.add_argument('--format', choices=['text', 'json', 'yaml'], default='text',
                       help='Output format (default: text)')
    parser.add_argument('--log-level', default=default_log_level(),
                       help='Logging level (default: $ISO8583_LOG_LEVEL or WARNING)')
    parser.add_argument('--log-json', action='store_true',
                       help='Emit logs as JSON')
    args = parser.parse_args(argv)

    configure_logging(args.log_level.upper(), json_format=args.log_json)

    messages = list(args.messages)
    if args.file:
        try:
            messages.extend(read_messages(args.file))
        except OSError as e:
            print(f"Error reading messages: {e}", file=sys.stderr)
            return 1
    if not messages:
        parser.error('no messages given')

    catalog = DEFAULT_CATALOG
    if args.catalog:
        try:
            catalog = load_catalog(args.catalog)
        except (OSError, yaml.YAMLError, CatalogError) as e:
            print(f"Error loading catalog: {e}", file=sys.stderr)
            return 1

    results = decode_all(Iso8583Parser(catalog), messages)
    print(render(results, args.format))

    return 0 if all(r.success for r in results) else 1


if __name__ == '__main__':
    sys.exit(main())
