#!/usr/bin/env python3
"""
ITD VCF Filter Module
Reduces a raw VarDict VCF to large insertions anchored in the 3' breakpoint exon
"""

import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Dict, Optional, TextIO

from exon_coordinates import (BreakpointWindow, ExonCoordinates, FIVE_PRIME_LABEL,
                              THREE_PRIME_LABEL, load_exon_coordinates)

logger = logging.getLogger(__name__)

DEFAULT_MIN_ALT_LENGTH = 4000


@dataclass
class FilterResult:
    """Counters for one filtering pass"""
    total_variants: int = 0
    itd_variants: int = 0
    header_lines: int = 0
    malformed_lines: int = 0

    def to_dict(self) -> Dict:
        return asdict(self)


class ITDVariantFilter:
    """Classify VCF records as FGFR1 ITD candidates"""

    def __init__(self, window: BreakpointWindow, min_alt_length: int = DEFAULT_MIN_ALT_LENGTH):
        """
        Args:
            window: 3' breakpoint exon window the insertion must start in
            min_alt_length: Minimum ALT allele length for an ITD
        """
        if not window.is_complete:
            raise ValueError(f"Breakpoint window is incomplete: {window}")
        self.window = window
        self.min_alt_length = min_alt_length

    def is_itd_candidate(self, position: int, ref: str, alt: str) -> bool:
        # ALT is compared as a literal string, multi-allelic fields are not split
        return (len(alt) > len(ref)
                and len(alt) >= self.min_alt_length
                and self.window.contains(position))

    def filter_stream(self, in_stream: TextIO, out_stream: TextIO) -> FilterResult:
        """
        Copy headers and ITD candidate records from in_stream to out_stream

        Lines are written in their original form and order. Records with fewer
        than 5 columns or a non-integer POS are dropped and not counted as
        processed variants.
        """
        result = FilterResult()

        for line in in_stream:
            text = line.rstrip("\r\n")

            if text.startswith("#"):
                out_stream.write(text + "\n")
                result.header_lines += 1
                continue

            fields = text.split("\t")
            if len(fields) < 5:
                result.malformed_lines += 1
                continue

            try:
                position = int(fields[1])
            except ValueError:
                result.malformed_lines += 1
                continue

            result.total_variants += 1
            if self.is_itd_candidate(position, fields[3], fields[4]):
                result.itd_variants += 1
                out_stream.write(text + "\n")
                logger.debug(f"ITD candidate at {fields[0]}:{position} "
                             f"(REF {len(fields[3])}bp, ALT {len(fields[4])}bp)")

        if result.malformed_lines:
            logger.debug(f"Skipped {result.malformed_lines} malformed VCF lines")

        return result

    def filter_vcf(self, input_vcf: str, output_vcf: str) -> FilterResult:
        """Filter a VCF file into output_vcf, creating its parent directory if needed"""
        with open(input_vcf, 'r', encoding='utf-8', errors='surrogateescape') as in_file:
            Path(output_vcf).parent.mkdir(parents=True, exist_ok=True)
            with open(output_vcf, 'w', encoding='utf-8', errors='surrogateescape') as out_file:
                result = self.filter_stream(in_file, out_file)

        logger.info(f"Total variants processed: {result.total_variants}")
        logger.info(f"FGFR1 ITD variants found: {result.itd_variants}")
        return result


def filter_vcf_for_itd(input_vcf: str, output_vcf: str, coordinates: ExonCoordinates,
                       min_alt_length: int = DEFAULT_MIN_ALT_LENGTH) -> FilterResult:
    """Main function to filter a VCF for ITDs starting in the 3' breakpoint exon"""
    vcf_filter = ITDVariantFilter(coordinates.three_prime, min_alt_length=min_alt_length)
    return vcf_filter.filter_vcf(input_vcf, output_vcf)


def main(argv: Optional[list] = None) -> int:
    """Filter an existing VCF without running the variant caller"""
    import argparse

    parser = argparse.ArgumentParser(description="Filter a VarDict VCF for FGFR1 ITD variants")
    parser.add_argument("input_vcf", help="Raw VCF produced by VarDict")
    parser.add_argument("output_vcf", help="Filtered output VCF")
    parser.add_argument("--breakpoint-bed", required=True,
                        help="BED file with FGFR1 ITD breakpoint exon coordinates")
    parser.add_argument("--min-alt-length", type=int, default=DEFAULT_MIN_ALT_LENGTH,
                        help=f"Minimum ALT allele length (default: {DEFAULT_MIN_ALT_LENGTH})")
    parser.add_argument("--five-prime-label", default=FIVE_PRIME_LABEL,
                        help=f"5' breakpoint exon label (default: {FIVE_PRIME_LABEL})")
    parser.add_argument("--three-prime-label", default=THREE_PRIME_LABEL,
                        help=f"3' breakpoint exon label (default: {THREE_PRIME_LABEL})")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        coordinates = load_exon_coordinates(args.breakpoint_bed,
                                            args.five_prime_label,
                                            args.three_prime_label)
        result = filter_vcf_for_itd(args.input_vcf, args.output_vcf, coordinates,
                                    min_alt_length=args.min_alt_length)
    except (OSError, ValueError) as e:
        logger.error(f"Filtering failed: {e}")
        return 1

    print(f"Total variants processed: {result.total_variants}")
    print(f"FGFR1 ITD variants found: {result.itd_variants}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
