#!/usr/bin/env python3
"""
fuzz_decoder.py - Fuzz test the ISO 8583 message parser

parse_message() must return a string for any input. Any exception escaping
it, or a non-string result, counts as a crash.

Usage:
    python tools/fuzz_decoder.py                        # 10 second fuzz
    python tools/fuzz_decoder.py --duration 60          # 1 minute fuzz
    python tools/fuzz_decoder.py --seed 12345           # Reproducible
    python tools/fuzz_decoder.py --catalog profile.yaml
"""

import argparse
import random
import string
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

sys.path.insert(0, str(Path(__file__).parent))
from field_catalog import DEFAULT_CATALOG, CatalogError, FieldCatalog, load_catalog
from iso8583_parser import Iso8583Parser


HEX_DIGITS = "0123456789ABCDEF"

SEED_MESSAGES = [
    "08100220000002000000112309023307315600",
    "0200" "7000000000000000" "164111111111111111" "000000" "000000010000",
    "0100" "0000000000000000",
]


@dataclass
class FuzzStats:
    """Statistics from a fuzz run."""
    total_inputs: int = 0
    decode_success: int = 0
    decode_error: int = 0
    crashes: int = 0
    duration_sec: float = 0.0
    seed: int = 0
    crash_inputs: List[str] = field(default_factory=list)

    @property
    def inputs_per_sec(self) -> float:
        if self.duration_sec > 0:
            return self.total_inputs / self.duration_sec
        return 0.0


class DecoderFuzzer:
    """Fuzz tester for the message parser."""

    def __init__(self, catalog: FieldCatalog = DEFAULT_CATALOG, seed: Optional[int] = None):
        self.parser = Iso8583Parser(catalog)
        self.seed = seed if seed is not None else random.randint(0, 2**32)
        self.rng = random.Random(self.seed)
        self.stats = FuzzStats(seed=self.seed)

    def generate_random_hex(self, min_len: int = 0, max_len: int = 255) -> str:
        length = self.rng.randint(min_len, max_len)
        return ''.join(self.rng.choice(HEX_DIGITS) for _ in range(length))

    def generate_random_text(self, min_len: int = 0, max_len: int = 64) -> str:
        length = self.rng.randint(min_len, max_len)
        return ''.join(self.rng.choice(string.printable) for _ in range(length))

    def generate_header_with_random_body(self) -> str:
        """Valid-looking header with a random bitmap and hex body."""
        mti = ''.join(self.rng.choice(string.digits) for _ in range(4))
        return mti + self.generate_random_hex(16, 16) + self.generate_random_hex(0, 200)

    def generate_truncated(self, message: str) -> str:
        if not message:
            return ''
        return message[:self.rng.randint(0, len(message) - 1)]

    def generate_extended(self, message: str) -> str:
        return message + self.generate_random_hex(1, 50)

    def generate_substituted(self, message: str) -> str:
        """Replace random characters with random hex digits."""
        if not message:
            return ''
        chars = list(message)
        for _ in range(self.rng.randint(1, max(1, len(chars) // 4))):
            chars[self.rng.randint(0, len(chars) - 1)] = self.rng.choice(HEX_DIGITS)
        return ''.join(chars)

    def generate_spaced(self, message: str) -> str:
        """Sprinkle whitespace and lowercase into a message."""
        out = []
        for char in message:
            if self.rng.random() < 0.1:
                out.append(self.rng.choice(" \t\n"))
            out.append(char.lower() if self.rng.random() < 0.3 else char)
        return ''.join(out)

    def fuzz_one(self, message) -> bool:
        """
        Fuzz with one input.
        Returns True if the parser handled it safely, False if crash.
        """
        self.stats.total_inputs += 1
        try:
            report = self.parser.parse_message(message)
        except Exception:
            self.stats.crashes += 1
            self.stats.crash_inputs.append(repr(message))
            return False

        if not isinstance(report, str):
            self.stats.crashes += 1
            self.stats.crash_inputs.append(repr(message))
            return False

        if report.startswith("ERROR") or "ERROR - " in report:
            self.stats.decode_error += 1
        else:
            self.stats.decode_success += 1
        return True

    def run(self, duration_sec: float = 10.0) -> FuzzStats:
        """Run fuzzing for specified duration."""
        start_time = time.time()
        end_time = start_time + duration_sec

        generators = [
            lambda: self.generate_random_hex(0, 255),
            lambda: self.generate_random_hex(0, 20),  # Short
            lambda: self.generate_random_text(),
            self.generate_header_with_random_body,
            lambda: self.generate_truncated(self.rng.choice(SEED_MESSAGES)),
            lambda: self.generate_extended(self.rng.choice(SEED_MESSAGES)),
            lambda: self.generate_substituted(self.rng.choice(SEED_MESSAGES)),
            lambda: self.generate_spaced(self.rng.choice(SEED_MESSAGES)),
            lambda: "0" * self.rng.randint(1, 60),
            lambda: "F" * self.rng.randint(1, 60),
            lambda: '',
            lambda: '   ',
            lambda: None,
        ]

        while time.time() < end_time:
            generator = self.rng.choice(generators)
            self.fuzz_one(generator())

        self.stats.duration_sec = time.time() - start_time
        return self.stats


def print_stats(stats: FuzzStats, name: str):
    """Print fuzzing statistics."""
    print(f"\n{name} Fuzzing Results")
    print("=" * 50)
    print(f"Seed: {stats.seed}")
    print(f"Duration: {stats.duration_sec:.1f}s")
    print(f"Total inputs: {stats.total_inputs}")
    print(f"Rate: {stats.inputs_per_sec:.0f} inputs/sec")
    print(f"Decode success: {stats.decode_success}")
    print(f"Decode errors: {stats.decode_error} (expected)")
    print(f"Crashes: {stats.crashes}")

    if stats.crashes > 0:
        print("\nCRASH INPUTS (reproducible with --seed):")
        for i, message in enumerate(stats.crash_inputs[:5]):
            print(f"  {i+1}: {message}")
        print("\nFAILED: Parser raised on malformed input!")
    else:
        print("\nPASSED: No crashes detected")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Fuzz test the ISO 8583 message parser'
    )
    parser.add_argument('-c', '--catalog', help='Field catalog YAML file')
    parser.add_argument('-d', '--duration', type=float, default=10.0,
                       help='Fuzz duration in seconds (default: 10)')
    parser.add_argument('-s', '--seed', type=int,
                       help='Random seed for reproducibility')
    args = parser.parse_args(argv)

    catalog = DEFAULT_CATALOG
    if args.catalog:
        try:
            catalog = load_catalog(args.catalog)
        except (OSError, yaml.YAMLError, CatalogError) as e:
            print(f"Error loading catalog: {e}", file=sys.stderr)
            return 1

    print(f"Fuzzing parser with catalog: {catalog.name}")
    fuzzer = DecoderFuzzer(catalog, seed=args.seed)
    stats = fuzzer.run(args.duration)
    print_stats(stats, "Parser")

    return 1 if stats.crashes > 0 else 0


if __name__ == '__main__':
    sys.exit(main())
